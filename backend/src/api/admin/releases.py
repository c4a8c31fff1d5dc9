"""
Admin release file API endpoints.

Provides:
- POST /api/admin/upload: upload handshake (presigned PUT URL + storage key)
- POST /api/admin/releases/{guid}/files: register an uploaded file
- DELETE /api/admin/releases/{guid}: delete a release and its stored objects
- DELETE /api/admin/releases/{guid}/files/{filename}: delete one file and its object
- GET /api/admin/releases/{guid}/rollout: rollout statistics
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from backend.src.api.dependencies import get_download_gateway, get_storage
from backend.src.db.database import get_db
from backend.src.middleware.auth import AdminContext, require_admin
from backend.src.models import ReleaseFile
from backend.src.schemas.rollout import RolloutStatsResponse
from backend.src.schemas.uploads import (
    ReleaseDeleteResponse,
    ReleaseFileCreate,
    ReleaseFileResponse,
    UploadRequest,
    UploadResponse,
)
from backend.src.services.download_service import DownloadGateway
from backend.src.services.exceptions import (
    ConflictError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from backend.src.services.release_file_service import ReleaseFileService
from backend.src.services.rollout_service import RolloutAssigner
from backend.src.services.storage_service import ObjectStorage
from backend.src.utils.logging_config import get_logger


logger = get_logger("api")

router = APIRouter(tags=["Admin - Releases"])


def release_file_to_response(release_file: ReleaseFile) -> ReleaseFileResponse:
    return ReleaseFileResponse(
        filename=release_file.filename,
        storage_key=release_file.storage_key,
        sha512=release_file.sha512,
        size=release_file.size,
        arch=release_file.arch,
        created_at=release_file.created_at,
    )


@router.post("/upload", response_model=UploadResponse)
def request_upload(
    request: UploadRequest,
    admin: AdminContext = Depends(require_admin),
    gateway: DownloadGateway = Depends(get_download_gateway),
):
    """
    Issue a presigned upload URL.

    The client PUTs the file to **uploadUrl**, then registers **storageKey**
    with `POST /api/admin/releases/{guid}/files`.
    """
    try:
        ticket = gateway.prepare_upload(
            filename=request.filename,
            content_type=request.content_type,
            channel=request.channel,
            platform=request.platform,
            version=request.version,
        )
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except StorageError as e:
        logger.error("Upload URL generation failed", extra={"error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Failed to generate upload URL"
        )

    return UploadResponse(
        upload_url=ticket.upload_url,
        storage_key=ticket.storage_key,
        filename=ticket.filename,
    )


@router.post(
    "/releases/{release_guid}/files",
    response_model=ReleaseFileResponse,
    status_code=status.HTTP_201_CREATED,
)
def register_release_file(
    release_guid: str,
    request: ReleaseFileCreate,
    admin: AdminContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Register an uploaded file with a release."""
    service = ReleaseFileService(db)
    try:
        release_file = service.register_file(
            release_guid,
            filename=request.filename,
            storage_key=request.storage_key,
            sha512=request.sha512,
            size=request.size,
            arch=request.arch,
        )
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Release not found: {release_guid}"
        )
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except ConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)

    return release_file_to_response(release_file)


@router.delete("/releases/{release_guid}", response_model=ReleaseDeleteResponse)
def delete_release(
    release_guid: str,
    admin: AdminContext = Depends(require_admin),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
):
    """
    Delete a release with its file records, then its stored objects.

    Objects that cannot be deleted are reported in **retainedObjects**;
    orphan cleanup removes them later.
    """
    service = ReleaseFileService(db, storage)
    try:
        deletion = service.delete_release(release_guid)
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Release not found: {release_guid}"
        )

    return ReleaseDeleteResponse(
        guid=release_guid,
        deleted_files=deletion.deleted_files,
        retained_objects=deletion.retained_objects,
    )


@router.delete(
    "/releases/{release_guid}/files/{filename}",
    response_model=ReleaseDeleteResponse,
)
def delete_release_file(
    release_guid: str,
    filename: str,
    admin: AdminContext = Depends(require_admin),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
):
    """
    Delete one file record of a release, then its stored object.

    An object that cannot be deleted is reported in **retainedObjects**.
    """
    service = ReleaseFileService(db, storage)
    try:
        deletion = service.delete_file(release_guid, filename)
    except NotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{e.resource} not found: {e.identifier}"
        )

    return ReleaseDeleteResponse(
        guid=release_guid,
        deleted_files=deletion.deleted_files,
        retained_objects=deletion.retained_objects,
    )


@router.get("/releases/{release_guid}/rollout", response_model=RolloutStatsResponse)
def get_rollout_stats(
    release_guid: str,
    admin: AdminContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Staged rollout statistics and 30-day download history for a release."""
    try:
        stats = RolloutAssigner(db).get_stats(release_guid)
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Release not found: {release_guid}"
        )

    return RolloutStatsResponse(
        total_checks=stats.total_checks,
        eligible_count=stats.eligible_count,
        eligible_percentage=round(stats.eligible_percentage, 2),
        target_percentage=stats.target_percentage,
        total_downloads=stats.total_downloads,
        download_history=stats.download_history,
        platform_breakdown=stats.platform_breakdown,
    )
