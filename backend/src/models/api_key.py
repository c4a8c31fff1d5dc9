"""
ApiKey model for access to private releases.

The plaintext key is only shown once at creation time; only its SHA-256
hash is stored. A key belongs to exactly one application.

Design Rationale:
- key_hash stored for validation (plaintext is unrecoverable)
- key_prefix (first characters) lets operators identify keys in listings
- expires_at is optional: NULL means the key never expires
- Expired keys are never considered, even if their hash matches
"""

from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from backend.src.models import Base
from backend.src.models.mixins import GuidMixin


class ApiKey(Base, GuidMixin):
    """
    API key granting access to an application's private releases.

    Attributes:
        id: Primary key (internal, never exposed)
        uuid: UUIDv7 for external identification (inherited from GuidMixin)
        guid: GUID string property (key_xxx, inherited from GuidMixin)
        app_id: Owning application (CASCADE delete)
        name: Operator-provided label
        key_hash: SHA-256 hex digest of the plaintext key
        key_prefix: Leading characters of the plaintext, for identification
        expires_at: Optional expiry timestamp (NULL = never expires)
        created_at: Creation timestamp
    """

    __tablename__ = "api_keys"

    GUID_PREFIX = "key"

    id = Column(Integer, primary_key=True, autoincrement=True)

    app_id = Column(
        Integer,
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name = Column(String(100), nullable=False)
    key_hash = Column(String(64), unique=True, nullable=False)
    key_prefix = Column(String(12), nullable=False)

    expires_at = Column(DateTime, nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    application = relationship("Application", back_populates="api_keys")

    @property
    def is_expired(self) -> bool:
        """True if the key has an expiry in the past."""
        return self.expires_at is not None and datetime.utcnow() >= self.expires_at

    def __repr__(self) -> str:
        return (
            f"<ApiKey(id={self.id}, name='{self.name}', "
            f"prefix='{self.key_prefix}...', expired={self.is_expired})>"
        )
