"""
Admin cleanup API endpoints for orphaned stored objects.

Provides:
- GET /api/admin/cleanup: preview of orphaned objects
- POST /api/admin/cleanup: reconciliation pass (dry run unless dryRun=false)

A pass already in progress makes a second request fail with 409.
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status
from sqlalchemy.orm import Session

from backend.src.api.dependencies import get_storage
from backend.src.config.settings import AppSettings, get_settings
from backend.src.db.database import get_db
from backend.src.middleware.auth import AdminContext, require_admin
from backend.src.schemas.cleanup import CleanupPreviewResponse, CleanupRequest, CleanupResponse
from backend.src.services.exceptions import ConflictError, StorageError
from backend.src.services.orphan_cleanup_service import OrphanReconciler
from backend.src.services.storage_service import ObjectStorage
from backend.src.utils.logging_config import get_logger


logger = get_logger("api")

router = APIRouter(prefix="/cleanup", tags=["Admin - Cleanup"])


def _reconcile(
    db: Session,
    storage: ObjectStorage,
    settings: AppSettings,
    dry_run: bool,
):
    reconciler = OrphanReconciler(db, storage, settings.orphan_min_age_minutes)
    try:
        return reconciler.reconcile(dry_run=dry_run)
    except ConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    except StorageError as e:
        logger.error("Cleanup failed: storage unavailable", extra={"error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Storage temporarily unavailable"
        )


@router.get("", response_model=CleanupPreviewResponse)
def preview_cleanup(
    admin: AdminContext = Depends(require_admin),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
    settings: AppSettings = Depends(get_settings),
):
    """List orphaned objects without deleting anything."""
    result = _reconcile(db, storage, settings, dry_run=True)
    return CleanupPreviewResponse(
        orphaned_files=result.orphaned_files,
        count=len(result.orphaned_files),
    )


@router.post("", response_model=CleanupResponse)
def run_cleanup(
    request: Optional[CleanupRequest] = Body(default=None),
    admin: AdminContext = Depends(require_admin),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
    settings: AppSettings = Depends(get_settings),
):
    """
    Reconcile storage against file records.

    - **dryRun**: When true (default), report orphans without deleting
    """
    dry_run = request.dry_run if request is not None else True
    result = _reconcile(db, storage, settings, dry_run=dry_run)

    logger.info(
        "Cleanup requested",
        extra={"dry_run": dry_run, "client_ip": admin.client_ip, "deleted": len(result.deleted_files)}
    )
    return CleanupResponse(**result.to_dict())
