"""
Release model for published application builds.

A release is one build of an application for a (channel, platform) pair.
The update endpoint serves the most recent published release by
release_date, not by created_at, so operators can backdate or reorder.

Design Rationale:
- Channel and platform are opaque strings (UI suggests latest/beta/alpha
  and windows/mac/linux, the engine never interprets them)
- Version is opaque as well (not required to be semver)
- staging_percentage gates staged rollout (100 = everyone)
- Files keep insertion order; the first file is the primary file used by
  the single-file manifest fields
"""

from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, DateTime, Boolean, Text, ForeignKey, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship, validates

from backend.src.models import Base
from backend.src.models.mixins import GuidMixin


DEFAULT_CHANNEL = "latest"


class Release(Base, GuidMixin):
    """
    Release of an application on a channel/platform.

    Attributes:
        id: Primary key (internal, never exposed)
        uuid: UUIDv7 for external identification (inherited from GuidMixin)
        guid: GUID string property (rel_xxx, inherited from GuidMixin)
        app_id: Owning application (CASCADE delete)
        version: Version string as shown to updater clients
        name: Optional display name (releaseName in manifests)
        notes: Optional release notes (releaseNotes in manifests)
        channel: Release track label
        platform: Target platform label
        staging_percentage: Share of clients (0-100) eligible for this release
        is_public: When False, an API key is required to fetch the release
        published: Unpublished releases are never served
        release_date: Ordering key for "latest release" resolution
        created_at: Creation timestamp
        updated_at: Last modification timestamp

    Constraints:
        - (app_id, version, channel, platform) must be unique
        - staging_percentage in [0, 100]
    """

    __tablename__ = "releases"

    GUID_PREFIX = "rel"

    id = Column(Integer, primary_key=True, autoincrement=True)

    app_id = Column(
        Integer,
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
    )

    version = Column(String(100), nullable=False)
    name = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    channel = Column(String(50), nullable=False, default=DEFAULT_CHANNEL)
    platform = Column(String(50), nullable=False)

    staging_percentage = Column(Integer, nullable=False, default=100)
    is_public = Column(Boolean, nullable=False, default=True)
    published = Column(Boolean, nullable=False, default=False)

    release_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )

    application = relationship("Application", back_populates="releases")
    files = relationship(
        "ReleaseFile",
        back_populates="release",
        order_by="ReleaseFile.id",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint(
            'app_id', 'version', 'channel', 'platform',
            name='uq_release_app_version_channel_platform'
        ),
        Index(
            'ix_releases_lookup',
            'app_id', 'channel', 'platform', 'published', 'release_date'
        ),
    )

    @validates('staging_percentage')
    def validate_staging_percentage(self, key: str, value: int) -> int:
        """Validate staging percentage is within [0, 100]."""
        if value is None:
            raise ValueError("Staging percentage is required")
        value = int(value)
        if value < 0 or value > 100:
            raise ValueError("Staging percentage must be between 0 and 100")
        return value

    @validates('version', 'channel', 'platform')
    def validate_label(self, key: str, value: str) -> str:
        if not value or not value.strip():
            raise ValueError(f"{key.capitalize()} is required")
        return value.strip()

    @property
    def primary_file(self):
        """First file in insertion order, or None for an empty release."""
        return self.files[0] if self.files else None

    def __repr__(self) -> str:
        return (
            f"<Release(guid='{self.guid}', version='{self.version}', "
            f"channel='{self.channel}', platform='{self.platform}', "
            f"published={self.published}, staging={self.staging_percentage})>"
        )
