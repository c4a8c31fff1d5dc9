"""
Release File model for downloadable binaries of a release.

Updater clients request literal filenames, so a file is looked up by
(application, filename) rather than by id. The stored object itself lives
in object storage under storage_key.

Design Rationale:
- Child entity of Release, no GUID (never referenced independently)
- CASCADE delete: a file record has no meaning without its release
- sha512 is the base64 digest electron-updater verifies after download
- Filename uniqueness is per application and enforced at registration
"""

from datetime import datetime

from sqlalchemy import Column, Integer, String, BigInteger, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship, validates

from backend.src.models import Base


class ReleaseFile(Base):
    """
    Binary artifact attached to a release.

    Attributes:
        id: Primary key; also defines the release's file order
        release_id: FK to releases.id (CASCADE delete)
        filename: Name presented to and requested by updater clients
        storage_key: Opaque object storage key
        sha512: Base64-encoded SHA-512 digest
        size: Size in bytes
        arch: Optional architecture tag (e.g., 'x64', 'arm64')
        created_at: Creation timestamp
    """

    __tablename__ = "release_files"

    id = Column(Integer, primary_key=True, autoincrement=True)

    release_id = Column(
        Integer,
        ForeignKey("releases.id", ondelete="CASCADE"),
        nullable=False,
    )

    filename = Column(String(255), nullable=False)
    storage_key = Column(String(1024), nullable=False)
    sha512 = Column(String(128), nullable=False)
    size = Column(BigInteger, nullable=False)
    arch = Column(String(50), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    release = relationship("Release", back_populates="files")

    __table_args__ = (
        Index('ix_release_files_release_id', 'release_id'),
        Index('ix_release_files_filename', 'filename'),
        Index('ix_release_files_storage_key', 'storage_key'),
    )

    @validates('filename')
    def validate_filename(self, key: str, value: str) -> str:
        """Validate filename contains no path separators."""
        if not value or not value.strip():
            raise ValueError("Filename is required")
        if '/' in value or '\\' in value:
            raise ValueError("Filename must not contain path separators (/ or \\)")
        return value.strip()

    @validates('size')
    def validate_size(self, key: str, value: int) -> int:
        if value is None or int(value) < 0:
            raise ValueError("Size must be a non-negative integer")
        return int(value)

    def to_manifest_entry(self) -> dict:
        """Manifest `files` entry; arch is omitted entirely when unset."""
        entry = {
            "url": self.filename,
            "sha512": self.sha512,
            "size": self.size,
        }
        if self.arch:
            entry["arch"] = self.arch
        return entry

    def __repr__(self) -> str:
        return (
            f"<ReleaseFile(release_id={self.release_id}, "
            f"filename='{self.filename}', storage_key='{self.storage_key}')>"
        )
