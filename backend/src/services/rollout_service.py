"""
Staged rollout assignment and statistics.

A client is eligible for a staged release when its bucket
(client_hash(client_id) % 100) is below the release's staging percentage.
The hash is the 32-bit polynomial string hash (multiplier 31 over UTF-16
code units, signed 32-bit wraparound, absolute value), so the same client
lands in the same bucket on every check and in every process.

Design:
- Fairness mechanism, not a security boundary: the hash is fast and
  deterministic, nothing relies on it being unpredictable
- The decision is recomputed on every check with the release's current
  percentage, so raising the percentage admits more clients and lowering
  it takes them back out
- RolloutTracking is written with INSERT ... ON CONFLICT DO UPDATE keyed
  on (release_id, client_id), one row per client even under retries
"""

import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List

from sqlalchemy import func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from backend.src.models import DownloadEventType, DownloadStat, Release, RolloutTracking
from backend.src.models.rollout_tracking import CLIENT_ID_MAX_LENGTH
from backend.src.services.exceptions import NotFoundError
from backend.src.utils.logging_config import get_logger


logger = get_logger("services")

BUCKET_COUNT = 100
DOWNLOAD_HISTORY_DAYS = 30

_UINT32_MASK = 0xFFFFFFFF
_INT32_SIGN = 0x80000000


def client_hash(client_id: str) -> int:
    """
    Deterministic non-negative hash of a client identifier.

    Args:
        client_id: Opaque client identifier

    Returns:
        Non-negative integer (0 <= value <= 2**31)
    """
    value = 0
    raw = client_id.encode("utf-16-le")
    for i in range(0, len(raw), 2):
        code_unit = raw[i] | (raw[i + 1] << 8)
        value = (value * 31 + code_unit) & _UINT32_MASK
    if value & _INT32_SIGN:
        value -= 1 << 32
    return abs(value)


def is_eligible(client_id: str, staging_percentage: int) -> bool:
    """Eligibility of a client for a given staging percentage."""
    return client_hash(client_id) % BUCKET_COUNT < staging_percentage


def tracking_client_id(client_id: str) -> str:
    """
    Key under which a client's decision is stored.

    Identifiers are opaque and unbounded; ones that do not fit the column
    are stored as "sha256:<hex>". Eligibility is always computed on the
    identifier as sent.
    """
    if len(client_id) <= CLIENT_ID_MAX_LENGTH:
        return client_id
    return "sha256:" + hashlib.sha256(client_id.encode("utf-8")).hexdigest()


@dataclass
class RolloutStats:
    """
    Rollout statistics for a release.

    Attributes:
        total_checks: Number of distinct clients tracked for the release
        eligible_count: Clients whose latest check was eligible
        target_percentage: Release's configured staging percentage
        download_history: Daily download counts, oldest first
        platform_breakdown: Download counts per platform
    """
    total_checks: int = 0
    eligible_count: int = 0
    target_percentage: int = 100
    download_history: List[Dict] = field(default_factory=list)
    platform_breakdown: List[Dict] = field(default_factory=list)

    @property
    def eligible_percentage(self) -> float:
        if self.total_checks == 0:
            return 0.0
        return self.eligible_count / self.total_checks * 100

    @property
    def total_downloads(self) -> int:
        return sum(day["downloads"] for day in self.download_history)


class RolloutAssigner:
    """
    Decides and records staged-rollout eligibility.

    Usage:
        >>> assigner = RolloutAssigner(db_session)
        >>> if not assigner.assign(release, client_id):
        ...     return Response(status_code=204)
    """

    def __init__(self, db: Session):
        self.db = db

    def assign(self, release: Release, client_id: str) -> bool:
        """
        Compute eligibility for a client and upsert its tracking row.

        Args:
            release: Release being checked
            client_id: Client identifier from the request

        Returns:
            True if the client is eligible for the release
        """
        eligible = is_eligible(client_id, release.staging_percentage)
        now = datetime.utcnow()

        dialect = self.db.get_bind().dialect.name
        insert = postgresql.insert if dialect == "postgresql" else sqlite.insert

        stmt = insert(RolloutTracking).values(
            release_id=release.id,
            client_id=tracking_client_id(client_id),
            eligible=eligible,
            checked_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[RolloutTracking.release_id, RolloutTracking.client_id],
            set_={"eligible": eligible, "checked_at": now},
        )
        self.db.execute(stmt)
        self.db.commit()

        logger.debug(
            "Rollout decision recorded",
            extra={
                "release_id": release.id,
                "staging_percentage": release.staging_percentage,
                "eligible": eligible,
            }
        )
        return eligible

    def get_stats(self, release_guid: str) -> RolloutStats:
        """
        Rollout and download statistics for a release.

        Args:
            release_guid: Release GUID (rel_xxx)

        Returns:
            RolloutStats for the release

        Raises:
            NotFoundError: If the release does not exist
        """
        try:
            release_uuid = Release.parse_guid(release_guid)
        except ValueError:
            raise NotFoundError("Release", release_guid)
        release = self.db.query(Release).filter(Release.uuid == release_uuid).first()
        if not release:
            raise NotFoundError("Release", release_guid)

        total_checks = self.db.query(func.count(RolloutTracking.id)).filter(
            RolloutTracking.release_id == release.id
        ).scalar()
        eligible_count = self.db.query(func.count(RolloutTracking.id)).filter(
            RolloutTracking.release_id == release.id,
            RolloutTracking.eligible.is_(True),
        ).scalar()

        today = datetime.utcnow().date()
        since = datetime.combine(today - timedelta(days=DOWNLOAD_HISTORY_DAYS - 1), datetime.min.time())
        download_times = self.db.query(DownloadStat.created_at).filter(
            DownloadStat.release_id == release.id,
            DownloadStat.event_type == DownloadEventType.DOWNLOAD.value,
            DownloadStat.created_at >= since,
        ).all()

        per_day: Dict[str, int] = {}
        for (created_at,) in download_times:
            day = created_at.date().isoformat()
            per_day[day] = per_day.get(day, 0) + 1

        history = []
        for offset in range(DOWNLOAD_HISTORY_DAYS - 1, -1, -1):
            day = (today - timedelta(days=offset)).isoformat()
            history.append({"date": day, "downloads": per_day.get(day, 0)})

        platform_rows = self.db.query(
            DownloadStat.platform, func.count(DownloadStat.id)
        ).filter(
            DownloadStat.release_id == release.id,
            DownloadStat.event_type == DownloadEventType.DOWNLOAD.value,
        ).group_by(DownloadStat.platform).all()

        return RolloutStats(
            total_checks=total_checks or 0,
            eligible_count=eligible_count or 0,
            target_percentage=release.staging_percentage,
            download_history=history,
            platform_breakdown=[
                {"platform": platform or "unknown", "count": count}
                for platform, count in platform_rows
            ],
        )
