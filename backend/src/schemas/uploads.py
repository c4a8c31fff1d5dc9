"""
Pydantic schemas for the upload handshake and file registration.

Upload is two steps:
1. POST /api/admin/upload returns a presigned PUT URL and the storage key
2. After the client PUTs the bytes, POST /api/admin/releases/{guid}/files
   registers the file record with that storage key

JSON fields are camelCase on the wire (uploadUrl, storageKey, ...).
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class UploadRequest(BaseModel):
    """
    Schema for requesting a presigned upload URL.

    Example:
        >>> UploadRequest(filename="Demo-Setup-2.1.0.exe",
        ...               content_type="application/octet-stream",
        ...               channel="latest", platform="windows", version="2.1.0")
    """

    filename: str = Field(..., min_length=1, max_length=255, description="Original filename")
    content_type: str = Field(..., min_length=1, max_length=255, description="MIME type of the upload")
    channel: str = Field(..., min_length=1, max_length=50, description="Release channel")
    platform: str = Field(..., min_length=1, max_length=50, description="Release platform")
    version: str = Field(..., min_length=1, max_length=100, description="Release version")

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "json_schema_extra": {
            "example": {
                "filename": "Demo-Setup-2.1.0.exe",
                "contentType": "application/octet-stream",
                "channel": "latest",
                "platform": "windows",
                "version": "2.1.0",
            }
        },
    }


class UploadResponse(BaseModel):
    """Presigned upload URL plus the key to register afterwards."""

    upload_url: str = Field(..., description="Presigned PUT URL")
    storage_key: str = Field(..., description="Storage key to pass to file registration")
    filename: str = Field(..., description="Filename presented to updater clients")

    model_config = {"alias_generator": to_camel, "populate_by_name": True}


class ReleaseFileCreate(BaseModel):
    """Schema for registering an uploaded file with a release."""

    filename: str = Field(..., min_length=1, max_length=255)
    storage_key: str = Field(..., min_length=1, max_length=1024)
    sha512: str = Field(..., min_length=88, max_length=88, description="Base64 SHA-512 digest")
    size: int = Field(..., ge=0, description="File size in bytes")
    arch: Optional[str] = Field(default=None, max_length=50, description="Architecture tag")

    model_config = {"alias_generator": to_camel, "populate_by_name": True}


class ReleaseFileResponse(BaseModel):
    """Registered file record."""

    filename: str
    storage_key: str
    sha512: str
    size: int
    arch: Optional[str] = None
    created_at: datetime

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "from_attributes": True,
    }


class ReleaseDeleteResponse(BaseModel):
    """Outcome of a release deletion."""

    guid: str = Field(..., description="Deleted release GUID")
    deleted_files: int = Field(..., description="Number of file records removed")
    retained_objects: list[str] = Field(
        default_factory=list,
        description="Storage keys that could not be deleted (left for cleanup)"
    )

    model_config = {"alias_generator": to_camel, "populate_by_name": True}
