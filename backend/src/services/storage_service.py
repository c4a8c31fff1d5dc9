"""
Object storage access for release binaries.

Wraps the boto3 S3 client (AWS S3 or S3-compatible storage such as MinIO)
with the handful of operations the update engine needs:
- Presign GET (download) and PUT (upload) URLs
- Exhaustive paginated listing with object age
- Single-object delete

Two clients are kept: the internal client talks to S3_ENDPOINT for
server-to-server calls; the public client signs URLs for
S3_PUBLIC_ENDPOINT so signatures stay valid behind a reverse proxy.

Listing and deletes retry transient failures with exponential backoff
(3 attempts); authorization failures are never retried.
"""

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from backend.src.config.settings import AppSettings
from backend.src.services.exceptions import StorageError
from backend.src.utils.logging_config import get_logger


logger = get_logger("storage")

# Error codes that will not succeed on retry
NON_RETRYABLE_ERROR_CODES = {
    "AccessDenied",
    "InvalidAccessKeyId",
    "SignatureDoesNotMatch",
    "NoSuchBucket",
}


@dataclass
class StoredObject:
    """
    Object storage listing entry.

    Attributes:
        key: Object key within the bucket
        size: Size in bytes
        last_modified: Last modification time (naive UTC)
    """
    key: str
    size: int
    last_modified: Optional[datetime] = None


def _to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """boto3 returns aware datetimes; the database stores naive UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class ObjectStorage:
    """
    S3 object storage adapter for the release bucket.

    Usage:
        >>> storage = ObjectStorage.from_settings(get_settings())
        >>> url = storage.presign_download("latest/windows/1.0.0/abc-Setup.exe", 3600, "Setup.exe")
        >>> objects = storage.list_objects()
    """

    MAX_RETRIES = 3
    INITIAL_BACKOFF = 1.0  # seconds
    BACKOFF_MULTIPLIER = 2.0

    def __init__(self, bucket: str, client: Any, public_client: Optional[Any] = None):
        """
        Initialize storage adapter.

        Args:
            bucket: Bucket holding release binaries
            client: boto3 S3 client for server-to-server operations
            public_client: boto3 S3 client used for presigning (defaults to client)
        """
        self.bucket = bucket
        self.client = client
        self.public_client = public_client or client

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "ObjectStorage":
        """Build internal and public clients from application settings."""
        client_config = Config(
            signature_version="s3v4",
            s3={"addressing_style": "path"},  # Required for MinIO
            connect_timeout=5,
            read_timeout=30,
            retries={"max_attempts": 1, "mode": "standard"},
        )
        common = {
            "region_name": settings.s3_region,
            "aws_access_key_id": settings.s3_access_key_id,
            "aws_secret_access_key": settings.s3_secret_access_key,
            "config": client_config,
        }
        client = boto3.client("s3", endpoint_url=settings.s3_endpoint, **common)
        public_client = boto3.client("s3", endpoint_url=settings.s3_public_endpoint, **common)
        return cls(settings.s3_bucket, client, public_client)

    def presign_download(
        self,
        key: str,
        expires_in: int,
        filename: Optional[str] = None,
    ) -> str:
        """
        Generate a presigned GET URL for a stored object.

        Args:
            key: Object key
            expires_in: URL lifetime in seconds
            filename: Name to present in the Content-Disposition header

        Returns:
            Presigned URL string

        Raises:
            StorageError: If the URL cannot be generated
        """
        params = {"Bucket": self.bucket, "Key": key}
        if filename:
            safe_name = filename.replace('"', "")
            params["ResponseContentDisposition"] = f'attachment; filename="{safe_name}"'
        try:
            return self.public_client.generate_presigned_url(
                "get_object", Params=params, ExpiresIn=expires_in
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to presign download", extra={"storage_key": key, "error": str(e)})
            raise StorageError("presign_download", str(e))

    def presign_upload(self, key: str, content_type: str, expires_in: int) -> str:
        """
        Generate a presigned PUT URL for uploading an object.

        Raises:
            StorageError: If the URL cannot be generated
        """
        params = {"Bucket": self.bucket, "Key": key, "ContentType": content_type}
        try:
            return self.public_client.generate_presigned_url(
                "put_object", Params=params, ExpiresIn=expires_in
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to presign upload", extra={"storage_key": key, "error": str(e)})
            raise StorageError("presign_upload", str(e))

    def list_objects(self, prefix: str = "") -> List[StoredObject]:
        """
        List every object in the bucket (all pages).

        Args:
            prefix: Optional key prefix

        Returns:
            List of StoredObject entries (directory markers excluded)

        Raises:
            StorageError: If listing fails after retries or is not authorized
        """
        def _list() -> List[StoredObject]:
            objects: List[StoredObject] = []
            continuation_token = None
            while True:
                kwargs: Dict[str, Any] = {"Bucket": self.bucket, "Prefix": prefix}
                if continuation_token:
                    kwargs["ContinuationToken"] = continuation_token

                response = self.client.list_objects_v2(**kwargs)

                for obj in response.get("Contents", []):
                    key = obj["Key"]
                    if key.endswith("/"):
                        continue
                    objects.append(StoredObject(
                        key=key,
                        size=obj.get("Size", 0),
                        last_modified=_to_naive_utc(obj.get("LastModified")),
                    ))

                if response.get("IsTruncated"):
                    continuation_token = response.get("NextContinuationToken")
                else:
                    break
            return objects

        objects = self._with_retry("list_objects", _list)
        logger.info(
            f"Listed {len(objects)} objects",
            extra={"bucket": self.bucket, "prefix": prefix}
        )
        return objects

    def delete_object(self, key: str) -> None:
        """
        Delete a single object.

        Raises:
            StorageError: If the delete fails after retries or is not authorized
        """
        self._with_retry(
            "delete_object",
            lambda: self.client.delete_object(Bucket=self.bucket, Key=key),
        )
        logger.info("Deleted object", extra={"bucket": self.bucket, "storage_key": key})

    def _with_retry(self, operation: str, call: Callable[[], Any]) -> Any:
        """Run a storage call with bounded exponential backoff."""
        for attempt in range(self.MAX_RETRIES):
            try:
                return call()
            except ClientError as e:
                error_code = e.response.get("Error", {}).get("Code", "Unknown")
                if error_code in NON_RETRYABLE_ERROR_CODES:
                    logger.error(
                        f"Storage {operation} rejected: {error_code}",
                        extra={"bucket": self.bucket}
                    )
                    raise StorageError(operation, error_code)
                last_error = str(e)
            except BotoCoreError as e:
                last_error = str(e)

            if attempt < self.MAX_RETRIES - 1:
                backoff = self.INITIAL_BACKOFF * (self.BACKOFF_MULTIPLIER ** attempt)
                logger.warning(
                    f"Storage {operation} attempt {attempt + 1} failed, retrying in {backoff}s",
                    extra={"bucket": self.bucket, "error": last_error}
                )
                time.sleep(backoff)

        logger.error(
            f"Storage {operation} failed after {self.MAX_RETRIES} attempts",
            extra={"bucket": self.bucket, "error": last_error}
        )
        raise StorageError(operation, last_error)
