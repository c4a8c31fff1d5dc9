"""
GUID mixin for SQLAlchemy models.

Provides UUID-based Global Unique Identifiers for entities that are
referenced from operator endpoints (applications, releases, API keys).
Uses UUIDv7 (time-ordered) with Crockford's Base32 encoding for URL-safe,
human-readable identifiers.

GUID Format: {prefix}_{base32_uuid}
Examples:
    - app_01hgw2bbg0000000000000000 (Application)
    - rel_01hgw2bbg0000000000000001 (Release)
    - key_01hgw2bbg0000000000000002 (ApiKey)
"""

import uuid as uuid_module
from typing import ClassVar, Optional

import base32_crockford
from sqlalchemy import Column, TypeDecorator, LargeBinary
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from uuid_extensions import uuid7


# Length of a fully encoded 128-bit UUID in Crockford Base32
ENCODED_UUID_LENGTH = 26


class UUIDType(TypeDecorator):
    """
    Platform-independent UUID type.

    PostgreSQL stores the native UUID type; SQLite (tests) stores the
    16 raw bytes. Always presents as a Python UUID object.
    """

    impl = LargeBinary
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(PG_UUID(as_uuid=True))
        return dialect.type_descriptor(LargeBinary(16))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if not isinstance(value, uuid_module.UUID):
            value = uuid_module.UUID(bytes=value) if isinstance(value, bytes) else uuid_module.UUID(str(value))
        if dialect.name == 'postgresql':
            return value
        return value.bytes

    def process_result_value(self, value, dialect):
        if value is None or isinstance(value, uuid_module.UUID):
            return value
        if isinstance(value, bytes):
            return uuid_module.UUID(bytes=value)
        return uuid_module.UUID(str(value))


class GuidMixin:
    """
    Mixin providing GUID support for entities.

    Adds:
    - uuid: UUIDv7 column, generated on insert
    - guid: property returning the prefixed Base32 string
    - parse_guid: class method decoding a GUID string back to a UUID

    Usage:
        class Release(Base, GuidMixin):
            GUID_PREFIX = "rel"

        release.guid  # rel_01hgw2bbg...
    """

    # Subclasses define their 3-character prefix
    GUID_PREFIX: ClassVar[str]

    uuid = Column(
        UUIDType(),
        nullable=False,
        unique=True,
        index=True,
        default=uuid7,
    )

    @property
    def guid(self) -> Optional[str]:
        """GUID in format {prefix}_{base32_uuid}, or None before flush."""
        if self.uuid is None:
            return None
        raw = self.uuid if isinstance(self.uuid, bytes) else self.uuid.bytes
        encoded = base32_crockford.encode(int.from_bytes(raw, "big"))
        return f"{self.GUID_PREFIX}_{encoded.zfill(ENCODED_UUID_LENGTH).lower()}"

    @classmethod
    def parse_guid(cls, guid: str) -> uuid_module.UUID:
        """
        Parse a GUID string to a UUID object.

        Args:
            guid: GUID string (e.g., "rel_01hgw2bbg...")

        Returns:
            UUID object

        Raises:
            ValueError: If the GUID is empty, has the wrong prefix, or
                does not decode to a 128-bit value
        """
        if not guid:
            raise ValueError("GUID cannot be empty")

        expected_prefix = f"{cls.GUID_PREFIX}_"
        if not guid.lower().startswith(expected_prefix):
            raise ValueError(
                f"Invalid prefix for {cls.__name__}. "
                f"Expected '{cls.GUID_PREFIX}', got '{guid.split('_')[0]}'"
            )

        encoded_part = guid[len(expected_prefix):]
        if len(encoded_part) != ENCODED_UUID_LENGTH:
            raise ValueError(
                f"Invalid GUID length. Expected {ENCODED_UUID_LENGTH} characters "
                f"after prefix, got {len(encoded_part)}"
            )

        try:
            uuid_int = base32_crockford.decode(encoded_part.upper())
            return uuid_module.UUID(bytes=uuid_int.to_bytes(16, "big"))
        except (ValueError, OverflowError) as e:
            raise ValueError(f"Invalid GUID encoding: {e}")
