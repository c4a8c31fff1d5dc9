"""
Shared FastAPI dependencies for update and operator routes.

Object storage is a process-wide singleton built from settings on first
use (main.py also creates it at startup). Tests override get_storage via
app.dependency_overrides.
"""

from typing import Optional

from fastapi import Depends, Request

from backend.src.config.settings import AppSettings, get_settings
from backend.src.services.download_service import DownloadGateway
from backend.src.services.key_service import extract_api_key
from backend.src.services.storage_service import ObjectStorage
from backend.src.services.telemetry_service import ClientInfo
from backend.src.utils.client_ip import get_client_ip


CLIENT_ID_HEADER = "x-client-id"

_storage: Optional[ObjectStorage] = None


def init_storage(settings: AppSettings) -> ObjectStorage:
    """Create the storage singleton (called from the application lifespan)."""
    global _storage
    _storage = ObjectStorage.from_settings(settings)
    return _storage


def get_storage() -> ObjectStorage:
    """FastAPI dependency returning the storage singleton."""
    if _storage is None:
        return init_storage(get_settings())
    return _storage


def get_download_gateway(
    storage: ObjectStorage = Depends(get_storage),
    settings: AppSettings = Depends(get_settings),
) -> DownloadGateway:
    return DownloadGateway(
        storage,
        download_expiry_seconds=settings.download_url_expiry_seconds,
        upload_expiry_seconds=settings.upload_url_expiry_seconds,
    )


def get_client_info(request: Request) -> ClientInfo:
    """
    Collect what an updater request tells us about its caller.

    The credential is taken from x-api-key, Authorization or ?key=, in that
    order. The client id is optional; without it no rollout gating applies.
    """
    client_id = request.headers.get(CLIENT_ID_HEADER)
    return ClientInfo(
        credential=extract_api_key(request.headers, request.query_params),
        client_id=client_id.strip() if client_id and client_id.strip() else None,
        ip=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
