"""
Update endpoints consumed by electron-updater style clients.

Provides:
- GET /updates/{app_slug}/{channel_file}: channel manifest (latest.yml,
  latest-mac.yml, latest-linux.yml, ...) or, for installer names, a
  redirect to the file
- GET /updates/{app_slug}/download/{filename}: redirect to a file

Handlers are plain `def` so they run in the threadpool: a client that
disconnects mid-request does not interrupt the telemetry write.

Every not-found cause (unknown app, no release, no files, unknown file,
unpublished release) returns the same body.
"""

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from backend.src.api.dependencies import get_client_info, get_download_gateway
from backend.src.config.settings import AppSettings, get_settings
from backend.src.db.database import get_db
from backend.src.services.download_service import DownloadGateway
from backend.src.services.exceptions import (
    ForbiddenError,
    NotFoundError,
    StorageError,
    UnauthorizedError,
    ValidationError,
)
from backend.src.services.manifest_service import (
    ManifestResolver,
    is_channel_file,
    is_download_file,
    parse_channel_file,
    render_manifest_yaml,
)
from backend.src.services.telemetry_service import ClientInfo
from backend.src.utils.logging_config import get_logger


logger = get_logger("api")

router = APIRouter(prefix="/updates", tags=["Updates"])

NOT_FOUND_DETAIL = "Not found"
MANIFEST_MEDIA_TYPE = "application/x-yaml"


def _to_http_error(e: Exception) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND_DETAIL)
    if isinstance(e, ValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    if isinstance(e, UnauthorizedError):
        return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.message)
    if isinstance(e, ForbiddenError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Storage temporarily unavailable"
    )


def _redirect_to_file(
    resolver: ManifestResolver,
    gateway: DownloadGateway,
    app_slug: str,
    filename: str,
    client: ClientInfo,
) -> RedirectResponse:
    try:
        release_file = resolver.resolve_download(app_slug, filename, client)
        url = gateway.download_url(release_file.storage_key, release_file.filename)
    except (NotFoundError, ValidationError, UnauthorizedError, ForbiddenError, StorageError) as e:
        raise _to_http_error(e)

    return RedirectResponse(url=url, status_code=status.HTTP_302_FOUND)


@router.get(
    "/{app_slug}/download/{filename}",
    summary="Download a release file",
    responses={302: {"description": "Redirect to a short-lived storage URL"}},
)
def download_file(
    app_slug: str,
    filename: str,
    db: Session = Depends(get_db),
    gateway: DownloadGateway = Depends(get_download_gateway),
    client: ClientInfo = Depends(get_client_info),
):
    """Redirect to a presigned URL for a file of a published release."""
    return _redirect_to_file(ManifestResolver(db), gateway, app_slug, filename, client)


@router.get(
    "/{app_slug}/{channel_file}",
    summary="Get channel manifest",
    responses={
        200: {"content": {MANIFEST_MEDIA_TYPE: {}}, "description": "Update manifest"},
        204: {"description": "Client not included in the staged rollout"},
        302: {"description": "Redirect to a file (installer names)"},
    },
)
def get_channel_file(
    app_slug: str,
    channel_file: str,
    db: Session = Depends(get_db),
    gateway: DownloadGateway = Depends(get_download_gateway),
    client: ClientInfo = Depends(get_client_info),
    settings: AppSettings = Depends(get_settings),
):
    """
    Serve the update manifest for a channel file, or redirect to a file.

    `latest.yml` resolves to the windows platform, `latest-mac.yml` to mac
    and `latest-linux.yml` to linux; the channel is the part before the
    platform suffix.
    """
    resolver = ManifestResolver(db)

    if not is_channel_file(channel_file):
        if is_download_file(channel_file):
            return _redirect_to_file(resolver, gateway, app_slug, channel_file, client)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid channel file format"
        )

    try:
        channel, platform = parse_channel_file(channel_file)
        manifest = resolver.resolve_manifest(app_slug, channel, platform, client)
    except (NotFoundError, ValidationError, UnauthorizedError, ForbiddenError) as e:
        raise _to_http_error(e)

    if manifest is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return Response(
        content=render_manifest_yaml(manifest),
        media_type=MANIFEST_MEDIA_TYPE,
        headers={"Cache-Control": f"public, max-age={settings.manifest_cache_seconds}"},
    )
