"""
Download statistics model.

Append-only event log of update checks and file downloads. Rows are never
updated; they disappear only when their release is deleted (CASCADE).
"""

import enum
from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey, Index

from backend.src.models import Base


class DownloadEventType(str, enum.Enum):
    """Kind of telemetry event."""

    CHECK = "check"
    DOWNLOAD = "download"


class DownloadStat(Base):
    """
    Telemetry event for a manifest check or a file download.

    Attributes:
        id: Primary key
        app_id: FK to applications.id (CASCADE delete)
        release_id: FK to releases.id (CASCADE delete)
        event_type: 'check' or 'download'
        platform: Platform of the release
        arch: Architecture of the downloaded file, if any
        ip: Source IP address, if known
        user_agent: Client user agent, if sent
        created_at: Event timestamp
    """

    __tablename__ = "download_stats"

    id = Column(Integer, primary_key=True, autoincrement=True)

    app_id = Column(
        Integer,
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
    )
    release_id = Column(
        Integer,
        ForeignKey("releases.id", ondelete="CASCADE"),
        nullable=False,
    )

    event_type = Column(String(20), nullable=False)
    platform = Column(String(50), nullable=True)
    arch = Column(String(50), nullable=True)
    ip = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('ix_download_stats_release_type', 'release_id', 'event_type'),
        Index('ix_download_stats_app_id', 'app_id'),
        Index('ix_download_stats_created_at', 'created_at'),
    )

    def __repr__(self) -> str:
        return (
            f"<DownloadStat(release_id={self.release_id}, "
            f"type='{self.event_type}', platform='{self.platform}')>"
        )
