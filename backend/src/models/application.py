"""
Application model.

An application is the unit that owns releases and API keys. Updater
clients address it by its slug, which appears in every update URL and is
therefore immutable once set.

Design Rationale:
- Slug is lowercase alphanumeric with single hyphens (URL-safe, no encoding)
- GUID used by operator endpoints; slug used by updater clients
- Releases and API keys are deleted with their application (CASCADE)
"""

import re
from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship, validates

from backend.src.models import Base
from backend.src.models.mixins import GuidMixin


# Lowercase alphanumeric segments separated by single hyphens
SLUG_PATTERN = re.compile(r'^[a-z0-9]+(?:-[a-z0-9]+)*$')


class Application(Base, GuidMixin):
    """
    Desktop application distributed through the update endpoint.

    Attributes:
        id: Primary key (internal, never exposed)
        uuid: UUIDv7 for external identification (inherited from GuidMixin)
        guid: GUID string property (app_xxx, inherited from GuidMixin)
        slug: Unique URL-safe identifier used in update URLs
        name: Display name
        created_at: Creation timestamp
        updated_at: Last modification timestamp

    Relationships:
        releases: Releases of this application (one-to-many)
        api_keys: API keys granting access to private releases (one-to-many)
    """

    __tablename__ = "applications"

    GUID_PREFIX = "app"

    id = Column(Integer, primary_key=True, autoincrement=True)

    slug = Column(String(100), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )

    releases = relationship(
        "Release",
        back_populates="application",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    api_keys = relationship(
        "ApiKey",
        back_populates="application",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @validates('slug')
    def validate_slug(self, key: str, value: str) -> str:
        """Validate slug format and reject changes after creation."""
        if not value or not SLUG_PATTERN.match(value):
            raise ValueError(
                "Slug must be lowercase letters, digits and single hyphens"
            )
        if self.slug is not None and self.slug != value:
            raise ValueError("Slug cannot be changed after creation")
        return value

    @validates('name')
    def validate_name(self, key: str, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("Name is required")
        return value.strip()

    def __repr__(self) -> str:
        return f"<Application(guid='{self.guid}', slug='{self.slug}')>"
