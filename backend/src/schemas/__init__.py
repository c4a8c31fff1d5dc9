"""
Pydantic schemas for API request/response validation.

This module exports all schema classes for use in API endpoints.
"""

from backend.src.schemas.uploads import (
    UploadRequest,
    UploadResponse,
    ReleaseFileCreate,
    ReleaseFileResponse,
    ReleaseDeleteResponse,
)
from backend.src.schemas.cleanup import (
    CleanupRequest,
    CleanupResponse,
    CleanupPreviewResponse,
)
from backend.src.schemas.keys import (
    ApiKeyCreate,
    ApiKeyCreatedResponse,
)
from backend.src.schemas.rollout import (
    DailyDownloads,
    PlatformCount,
    RolloutStatsResponse,
)

__all__ = [
    "UploadRequest",
    "UploadResponse",
    "ReleaseFileCreate",
    "ReleaseFileResponse",
    "ReleaseDeleteResponse",
    "CleanupRequest",
    "CleanupResponse",
    "CleanupPreviewResponse",
    "ApiKeyCreate",
    "ApiKeyCreatedResponse",
    "DailyDownloads",
    "PlatformCount",
    "RolloutStatsResponse",
]
