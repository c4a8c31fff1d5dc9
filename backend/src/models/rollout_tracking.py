"""
Rollout tracking model.

Persisted cache of the staged-rollout decision for a (release, client)
pair. Rows are written with an atomic upsert keyed on the composite
unique constraint, so a client racing itself never produces duplicates.
"""

from datetime import datetime

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from backend.src.models import Base


# Longer identifiers are stored as a fixed-width digest (see rollout_service)
CLIENT_ID_MAX_LENGTH = 255


class RolloutTracking(Base):
    """
    Last rollout decision for a client of a release.

    Attributes:
        id: Primary key
        release_id: FK to releases.id (CASCADE delete)
        client_id: Opaque client identifier supplied by the updater, or its
            SHA-256 digest when longer than CLIENT_ID_MAX_LENGTH
        eligible: Result of the most recent eligibility check
        checked_at: Time of the most recent check
    """

    __tablename__ = "rollout_tracking"

    id = Column(Integer, primary_key=True, autoincrement=True)

    release_id = Column(
        Integer,
        ForeignKey("releases.id", ondelete="CASCADE"),
        nullable=False,
    )
    client_id = Column(String(CLIENT_ID_MAX_LENGTH), nullable=False)

    eligible = Column(Boolean, nullable=False)
    checked_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    release = relationship("Release")

    __table_args__ = (
        UniqueConstraint('release_id', 'client_id', name='uq_rollout_release_client'),
    )

    def __repr__(self) -> str:
        return (
            f"<RolloutTracking(release_id={self.release_id}, "
            f"client_id='{self.client_id}', eligible={self.eligible})>"
        )
