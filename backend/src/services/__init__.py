"""
Service layer for business logic.

This module exports all service classes for use in API endpoints.
"""

from backend.src.services.exceptions import (
    ServiceError,
    NotFoundError,
    ConflictError,
    ValidationError,
    UnauthorizedError,
    ForbiddenError,
    StorageError,
)
from backend.src.services.storage_service import ObjectStorage, StoredObject
from backend.src.services.key_service import ApiKeyService, KeyVerifier
from backend.src.services.rollout_service import RolloutAssigner, RolloutStats
from backend.src.services.telemetry_service import ClientInfo, TelemetryService
from backend.src.services.manifest_service import ManifestResolver
from backend.src.services.download_service import DownloadGateway, UploadTicket
from backend.src.services.orphan_cleanup_service import CleanupResult, OrphanReconciler
from backend.src.services.release_file_service import ReleaseFileService

__all__ = [
    "ServiceError",
    "NotFoundError",
    "ConflictError",
    "ValidationError",
    "UnauthorizedError",
    "ForbiddenError",
    "StorageError",
    "ObjectStorage",
    "StoredObject",
    "ApiKeyService",
    "KeyVerifier",
    "RolloutAssigner",
    "RolloutStats",
    "ClientInfo",
    "TelemetryService",
    "ManifestResolver",
    "DownloadGateway",
    "UploadTicket",
    "CleanupResult",
    "OrphanReconciler",
    "ReleaseFileService",
]
