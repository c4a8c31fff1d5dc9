"""
Release file lifecycle: registration after upload, file and release deletion.

Deletion order matters: database rows go first (committed), stored
objects second and best-effort. A crash between the two leaves objects
without records, which orphan reconciliation finds; the reverse order
would leave records pointing at nothing.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.orm import Session

from backend.src.models import Release, ReleaseFile
from backend.src.services.download_service import validate_filename
from backend.src.services.exceptions import ConflictError, NotFoundError, StorageError, ValidationError
from backend.src.services.storage_service import ObjectStorage
from backend.src.utils.logging_config import get_logger


logger = get_logger("services")

# Base64 SHA-512 digest: 86 characters plus "==" padding
SHA512_BASE64_PATTERN = re.compile(r'^[A-Za-z0-9+/]{86}==$')


@dataclass
class ReleaseDeletion:
    """
    Outcome of a release deletion.

    Attributes:
        deleted_files: Number of file records removed with the release
        retained_objects: Storage keys whose objects could not be deleted
    """
    deleted_files: int = 0
    retained_objects: List[str] = field(default_factory=list)


class ReleaseFileService:
    """
    Registers file records and deletes releases with their stored objects.

    Usage:
        >>> service = ReleaseFileService(db_session, storage)
        >>> release_file = service.register_file(
        ...     "rel_01hgw2bbg...", "Setup.exe", ticket.storage_key, sha512, 1024
        ... )
        >>> service.delete_release("rel_01hgw2bbg...")
    """

    def __init__(self, db: Session, storage: Optional[ObjectStorage] = None):
        self.db = db
        self.storage = storage

    def register_file(
        self,
        release_guid: str,
        filename: str,
        storage_key: str,
        sha512: str,
        size: int,
        arch: Optional[str] = None,
    ) -> ReleaseFile:
        """
        Create the file record for an uploaded object.

        Args:
            release_guid: Release GUID (rel_xxx)
            filename: Name requested by updater clients
            storage_key: Key returned by the upload handshake
            sha512: Base64-encoded SHA-512 digest
            size: Size in bytes
            arch: Optional architecture tag

        Returns:
            Created ReleaseFile

        Raises:
            NotFoundError: If the release does not exist
            ValidationError: If any field is malformed
            ConflictError: If the filename already exists in the application
        """
        release = self._get_release(release_guid)

        filename = validate_filename(filename)
        if not storage_key or not storage_key.strip():
            raise ValidationError("Storage key is required", field="storage_key")
        if not sha512 or not SHA512_BASE64_PATTERN.match(sha512):
            raise ValidationError("sha512 must be a base64-encoded SHA-512 digest", field="sha512")
        if size is None or size < 0:
            raise ValidationError("Size must be a non-negative integer", field="size")

        existing = (
            self.db.query(ReleaseFile.id)
            .join(Release, ReleaseFile.release_id == Release.id)
            .filter(Release.app_id == release.app_id, ReleaseFile.filename == filename)
            .first()
        )
        if existing:
            raise ConflictError(
                f"File '{filename}' already exists for this application"
            )

        release_file = ReleaseFile(
            release_id=release.id,
            filename=filename,
            storage_key=storage_key.strip(),
            sha512=sha512,
            size=size,
            arch=arch or None,
        )
        self.db.add(release_file)
        self.db.commit()
        self.db.refresh(release_file)

        logger.info(
            f"Registered file '{filename}' for release {release.guid}",
            extra={"release_id": release.id, "storage_key": release_file.storage_key}
        )
        return release_file

    def delete_release(self, release_guid: str) -> ReleaseDeletion:
        """
        Delete a release, its file records, and then its stored objects.

        Object deletion failures are logged and do not fail the call.

        Returns:
            ReleaseDeletion with the keys whose objects could not be deleted

        Raises:
            NotFoundError: If the release does not exist
        """
        release = self._get_release(release_guid)
        storage_keys = [f.storage_key for f in release.files]
        release_id = release.id

        self.db.delete(release)
        self.db.commit()

        logger.info(
            f"Deleted release {release_guid}",
            extra={"release_id": release_id, "files": len(storage_keys)}
        )

        result = ReleaseDeletion(deleted_files=len(storage_keys))
        if self.storage is None:
            result.retained_objects = storage_keys
            return result

        for key in storage_keys:
            try:
                self.storage.delete_object(key)
            except StorageError as e:
                logger.warning(
                    "Stored object left behind after release deletion",
                    extra={"storage_key": key, "error": str(e)}
                )
                result.retained_objects.append(key)
        return result

    def delete_file(self, release_guid: str, filename: str) -> ReleaseDeletion:
        """
        Delete one file record of a release, then its stored object.

        Same ordering as delete_release: the record is committed away first
        and the object deletion is best-effort.

        Raises:
            NotFoundError: If the release or the file does not exist
        """
        release = self._get_release(release_guid)
        release_file = (
            self.db.query(ReleaseFile)
            .filter(ReleaseFile.release_id == release.id, ReleaseFile.filename == filename)
            .first()
        )
        if not release_file:
            raise NotFoundError("File", f"{release_guid}/{filename}")
        storage_key = release_file.storage_key

        self.db.delete(release_file)
        self.db.commit()

        logger.info(
            f"Deleted file '{filename}' from release {release_guid}",
            extra={"release_id": release.id, "storage_key": storage_key}
        )

        result = ReleaseDeletion(deleted_files=1)
        if self.storage is None:
            result.retained_objects = [storage_key]
            return result

        try:
            self.storage.delete_object(storage_key)
        except StorageError as e:
            logger.warning(
                "Stored object left behind after file deletion",
                extra={"storage_key": storage_key, "error": str(e)}
            )
            result.retained_objects.append(storage_key)
        return result

    def _get_release(self, release_guid: str) -> Release:
        try:
            release_uuid = Release.parse_guid(release_guid)
        except ValueError:
            raise NotFoundError("Release", release_guid)
        release = self.db.query(Release).filter(Release.uuid == release_uuid).first()
        if not release:
            raise NotFoundError("Release", release_guid)
        return release
