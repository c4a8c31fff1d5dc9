"""
Admin API key endpoints.

Provides:
- POST /api/admin/apps/{guid}/keys: issue an API key for private releases
- DELETE /api/admin/apps/{guid}/keys/{key_guid}: revoke an API key

The plaintext key is returned once in the creation response.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from backend.src.db.database import get_db
from backend.src.middleware.auth import AdminContext, require_admin
from backend.src.schemas.keys import ApiKeyCreate, ApiKeyCreatedResponse
from backend.src.services.exceptions import NotFoundError, ValidationError
from backend.src.services.key_service import ApiKeyService


router = APIRouter(prefix="/apps", tags=["Admin - API Keys"])


@router.post(
    "/{app_guid}/keys",
    response_model=ApiKeyCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_api_key(
    app_guid: str,
    request: ApiKeyCreate,
    admin: AdminContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Issue an API key granting access to the application's private releases.

    - **name**: Label for the key
    - **expiresInDays**: Optional lifetime in days (omit for no expiry)

    The plaintext **key** is shown in this response only.
    """
    try:
        plaintext, api_key = ApiKeyService(db).create_key(
            app_guid, request.name, request.expires_in_days
        )
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Application not found: {app_guid}"
        )
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    return ApiKeyCreatedResponse(
        guid=api_key.guid,
        name=api_key.name,
        key=plaintext,
        key_prefix=api_key.key_prefix,
        expires_at=api_key.expires_at,
        created_at=api_key.created_at,
    )


@router.delete("/{app_guid}/keys/{key_guid}", status_code=status.HTTP_204_NO_CONTENT)
def revoke_api_key(
    app_guid: str,
    key_guid: str,
    admin: AdminContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Revoke an API key. Clients presenting it are refused from then on.
    """
    try:
        ApiKeyService(db).revoke_key(app_guid, key_guid)
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"API key not found: {key_guid}"
        )
