"""
Download gateway for release binaries.

Turns stored-object references into short-lived presigned URLs. Bytes
never pass through this service: downloads are redirects to storage and
uploads go straight to storage with a presigned PUT.

Upload storage keys are built as
    {channel}/{platform}/{version}/{uuid4}-{filename}
so concurrent uploads for different releases never collide and a
re-upload of the same logical file lands under a new key instead of
overwriting an object another release may still reference.
"""

import re
import uuid
from dataclasses import dataclass
from typing import Optional

from backend.src.services.exceptions import ValidationError
from backend.src.services.storage_service import ObjectStorage
from backend.src.utils.logging_config import get_logger


logger = get_logger("services")

# Version, channel and platform become key segments: no separators, no traversal
KEY_SEGMENT_PATTERN = re.compile(r'^[a-zA-Z0-9][a-zA-Z0-9.\-+_]*$')

# Default presigned URL validity period (1 hour)
DEFAULT_URL_EXPIRY_SECONDS = 3600


@dataclass
class UploadTicket:
    """
    Result of an upload handshake.

    Attributes:
        upload_url: Presigned PUT URL the caller uploads bytes to
        storage_key: Key to register with the file record afterwards
        filename: Original filename presented to updater clients
    """
    upload_url: str
    storage_key: str
    filename: str


def validate_filename(filename: str) -> str:
    """Reject empty filenames and filenames with path separators."""
    if not filename or not filename.strip():
        raise ValidationError("Filename is required", field="filename")
    filename = filename.strip()
    if '/' in filename or '\\' in filename or filename in ('.', '..'):
        raise ValidationError("Filename must not contain path separators", field="filename")
    return filename


def _validate_segment(value: str, field: str) -> str:
    if not value or not KEY_SEGMENT_PATTERN.match(value) or '..' in value:
        raise ValidationError(f"Invalid {field} format", field=field)
    return value


def build_storage_key(
    channel: str,
    platform: str,
    version: str,
    filename: str,
    unique_id: Optional[str] = None,
) -> str:
    """
    Build the storage key for an uploaded release file.

    Args:
        channel: Release channel (e.g., "latest")
        platform: Release platform (e.g., "windows")
        version: Release version (e.g., "2.1.0")
        filename: Original filename
        unique_id: Uniquifier (a fresh UUID4 when omitted)

    Returns:
        Storage key string

    Raises:
        ValidationError: If any component is malformed
    """
    channel = _validate_segment(channel, "channel")
    platform = _validate_segment(platform, "platform")
    version = _validate_segment(version, "version")
    filename = validate_filename(filename)
    unique_id = unique_id or str(uuid.uuid4())
    return f"{channel}/{platform}/{version}/{unique_id}-{filename}"


class DownloadGateway:
    """
    Issues presigned download and upload URLs.

    Usage:
        >>> gateway = DownloadGateway(storage)
        >>> url = gateway.download_url(release_file.storage_key, release_file.filename)
        >>> ticket = gateway.prepare_upload("Setup.exe", "application/octet-stream",
        ...                                 "latest", "windows", "2.1.0")
    """

    def __init__(
        self,
        storage: ObjectStorage,
        download_expiry_seconds: int = DEFAULT_URL_EXPIRY_SECONDS,
        upload_expiry_seconds: int = DEFAULT_URL_EXPIRY_SECONDS,
    ):
        self.storage = storage
        self.download_expiry_seconds = download_expiry_seconds
        self.upload_expiry_seconds = upload_expiry_seconds

    def download_url(self, storage_key: str, filename: Optional[str] = None) -> str:
        """
        Short-lived retrieval URL for a stored object.

        Args:
            storage_key: Object key
            filename: Name the client should save the file as

        Returns:
            Presigned URL

        Raises:
            StorageError: If the URL cannot be issued
        """
        return self.storage.presign_download(
            storage_key, self.download_expiry_seconds, filename
        )

    def prepare_upload(
        self,
        filename: str,
        content_type: str,
        channel: str,
        platform: str,
        version: str,
    ) -> UploadTicket:
        """
        Upload handshake: compute a storage key and presign a PUT for it.

        Raises:
            ValidationError: If any input is malformed
            StorageError: If the URL cannot be issued
        """
        if not content_type or not content_type.strip():
            raise ValidationError("Content type is required", field="content_type")

        filename = validate_filename(filename)
        storage_key = build_storage_key(channel, platform, version, filename)
        upload_url = self.storage.presign_upload(
            storage_key, content_type.strip(), self.upload_expiry_seconds
        )

        logger.info(
            "Issued upload URL",
            extra={"storage_key": storage_key, "channel": channel, "platform": platform}
        )
        return UploadTicket(upload_url=upload_url, storage_key=storage_key, filename=filename)
