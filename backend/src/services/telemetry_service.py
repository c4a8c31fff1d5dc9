"""
Telemetry recording for update checks and downloads.

Writes append-only DownloadStat rows. A failed write is logged and rolled
back but never fails the update response that triggered it.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.src.models import DownloadEventType, DownloadStat
from backend.src.utils.logging_config import get_logger


logger = get_logger("services")


@dataclass
class ClientInfo:
    """
    What the update endpoints know about the calling client.

    Attributes:
        credential: API key presented by the client, if any
        client_id: Rollout participation identifier, if any
        ip: Source IP address, if known
        user_agent: User-Agent header, if sent
    """
    credential: Optional[str] = None
    client_id: Optional[str] = None
    ip: Optional[str] = None
    user_agent: Optional[str] = None


class TelemetryService:
    """Records DownloadStat events."""

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        app_id: int,
        release_id: int,
        event_type: DownloadEventType,
        platform: Optional[str],
        client: ClientInfo,
        arch: Optional[str] = None,
    ) -> bool:
        """
        Append a telemetry event.

        Returns:
            True if the event was stored, False if the write failed
        """
        stat = DownloadStat(
            app_id=app_id,
            release_id=release_id,
            event_type=event_type.value,
            platform=platform,
            arch=arch or None,
            ip=client.ip or None,
            user_agent=client.user_agent or None,
        )
        try:
            self.db.add(stat)
            self.db.commit()
            return True
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(
                "Failed to record telemetry event",
                extra={
                    "app_id": app_id,
                    "release_id": release_id,
                    "event_type": event_type.value,
                    "error": str(e),
                }
            )
            return False
