"""
Authentication dependencies for operator API routes.

Provides:
- AdminContext: The resolved operator principal
- require_admin: FastAPI dependency guarding /api/admin routes

The default implementation accepts a Bearer token equal to
UPDATEHUB_ADMIN_TOKEN. Deployments with their own identity layer replace
it through app.dependency_overrides[require_admin].

Updater endpoints do not use this module: private releases are guarded
by per-application API keys (see services/key_service.py).
"""

import hmac
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request, status

from backend.src.config.settings import AppSettings, get_settings
from backend.src.utils.client_ip import get_client_ip
from backend.src.utils.logging_config import get_logger


logger = get_logger("api")


@dataclass
class AdminContext:
    """
    Operator principal for admin requests.

    Attributes:
        subject: Identifier of the authenticated operator
        client_ip: Source address of the request
    """
    subject: str
    client_ip: Optional[str] = None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"}
    )


def require_admin(
    request: Request,
    settings: AppSettings = Depends(get_settings),
) -> AdminContext:
    """
    FastAPI dependency that requires operator authentication.

    Raises:
        HTTPException 401: Token missing, invalid, or operator access not configured

    Example:
        @router.post("/cleanup")
        def run_cleanup(admin: AdminContext = Depends(require_admin)):
            ...
    """
    client_ip = get_client_ip(request)

    if not settings.admin_configured:
        logger.warning("Operator request rejected: no admin token configured")
        raise _unauthorized("Operator access is not configured")

    auth_header = request.headers.get("Authorization", "")
    if not auth_header.lower().startswith("bearer "):
        raise _unauthorized("Not authenticated")

    token = auth_header[7:].strip()
    if not hmac.compare_digest(token.encode("utf-8"), settings.admin_token.encode("utf-8")):
        logger.warning("Invalid operator token", extra={"client_ip": client_ip})
        raise _unauthorized("Invalid token")

    return AdminContext(subject="admin", client_ip=client_ip)


__all__ = [
    "AdminContext",
    "require_admin",
]
