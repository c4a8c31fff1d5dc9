"""
API key service for private release access.

Handles:
- Credential extraction from request headers / query parameters
- Verification of a presented key against an application's live keys
- Key issuance (plaintext returned exactly once) and revocation

Design:
- Only the SHA-256 hash of a key is stored
- Every live key is compared with hmac.compare_digest (constant time)
- Expired keys are filtered out in the query and never compared
- Callers receive a boolean; storage faults propagate as-is to the
  API layer, which reports them as internal errors
"""

import hashlib
import hmac
import re
import secrets
from datetime import datetime, timedelta
from typing import Mapping, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from backend.src.models import ApiKey, Application
from backend.src.services.exceptions import NotFoundError, ValidationError
from backend.src.utils.logging_config import get_logger


logger = get_logger("services")


API_KEY_HEADER = "x-api-key"
AUTHORIZATION_HEADER = "authorization"
API_KEY_QUERY_PARAM = "key"

KEY_PLAINTEXT_PREFIX = "uhk_"
KEY_PREFIX_LENGTH = 12  # "uhk_" + 8 characters shown in listings

_BEARER_PREFIX = re.compile(r'^Bearer\s+', re.IGNORECASE)


def hash_api_key(plaintext: str) -> str:
    """SHA-256 hex digest of a plaintext key."""
    return hashlib.sha256(plaintext.encode("utf-8")).hexdigest()


def extract_api_key(
    headers: Mapping[str, str],
    query_params: Mapping[str, str],
) -> Optional[str]:
    """
    Extract a presented API key from a request.

    Precedence (first present wins):
        1. x-api-key header
        2. Authorization header, "Bearer " prefix stripped case-insensitively
           (a bare key without the prefix is accepted too)
        3. key query parameter

    Args:
        headers: Case-insensitive header mapping (e.g., Starlette Headers)
        query_params: Query parameter mapping

    Returns:
        The credential string, or None if no channel carries one
    """
    api_key = headers.get(API_KEY_HEADER)
    if api_key and api_key.strip():
        return api_key.strip()

    auth_header = headers.get(AUTHORIZATION_HEADER)
    if auth_header and auth_header.strip():
        api_key = _BEARER_PREFIX.sub("", auth_header.strip()).strip()
        if api_key:
            return api_key

    api_key = query_params.get(API_KEY_QUERY_PARAM)
    if api_key and api_key.strip():
        return api_key.strip()

    return None


class KeyVerifier:
    """
    Verifies presented credentials against an application's API keys.

    Usage:
        >>> verifier = KeyVerifier(db_session)
        >>> if not verifier.verify(app.id, presented_key):
        ...     raise ForbiddenError()
    """

    def __init__(self, db: Session):
        self.db = db

    def verify(self, app_id: int, presented_key: str) -> bool:
        """
        Check a plaintext credential against every non-expired key of an app.

        Args:
            app_id: Application ID
            presented_key: Plaintext credential from the request

        Returns:
            True if any live key matches, False otherwise
        """
        if not presented_key:
            return False

        now = datetime.utcnow()
        live_hashes = (
            self.db.query(ApiKey.key_hash)
            .filter(
                ApiKey.app_id == app_id,
                or_(ApiKey.expires_at.is_(None), ApiKey.expires_at > now),
            )
            .all()
        )

        presented_hash = hash_api_key(presented_key)
        for (key_hash,) in live_hashes:
            if hmac.compare_digest(presented_hash, key_hash):
                return True

        logger.warning(
            "API key rejected",
            extra={"app_id": app_id, "live_keys": len(live_hashes)}
        )
        return False


class ApiKeyService:
    """
    Issues and revokes API keys for an application.

    The plaintext is generated here, hashed, and returned to the caller
    once; it cannot be recovered afterwards.
    """

    def __init__(self, db: Session):
        self.db = db

    def create_key(
        self,
        app_guid: str,
        name: str,
        expires_in_days: Optional[int] = None,
    ) -> Tuple[str, ApiKey]:
        """
        Create a new API key for an application.

        Args:
            app_guid: Application GUID (app_xxx)
            name: Operator-provided label
            expires_in_days: Days until expiry (None = never expires)

        Returns:
            Tuple of (plaintext_key, ApiKey model)

        Raises:
            NotFoundError: If the application does not exist
            ValidationError: If name or expiry is invalid
        """
        if not name or not name.strip():
            raise ValidationError("Key name cannot be empty", field="name")
        name = name.strip()
        if len(name) > 100:
            raise ValidationError("Key name cannot exceed 100 characters", field="name")
        if expires_in_days is not None and expires_in_days < 1:
            raise ValidationError("Expiry must be at least 1 day", field="expires_in_days")

        try:
            app_uuid = Application.parse_guid(app_guid)
        except ValueError:
            raise NotFoundError("Application", app_guid)
        app = self.db.query(Application).filter(Application.uuid == app_uuid).first()
        if not app:
            raise NotFoundError("Application", app_guid)

        plaintext = f"{KEY_PLAINTEXT_PREFIX}{secrets.token_urlsafe(32)}"
        expires_at = (
            datetime.utcnow() + timedelta(days=expires_in_days)
            if expires_in_days is not None else None
        )

        api_key = ApiKey(
            app_id=app.id,
            name=name,
            key_hash=hash_api_key(plaintext),
            key_prefix=plaintext[:KEY_PREFIX_LENGTH],
            expires_at=expires_at,
        )
        self.db.add(api_key)
        self.db.commit()
        self.db.refresh(api_key)

        logger.info(
            f"Created API key '{name}' ({api_key.guid}) for application {app.slug}",
            extra={"app_slug": app.slug, "expires_at": str(expires_at)}
        )

        return plaintext, api_key

    def revoke_key(self, app_guid: str, key_guid: str) -> None:
        """
        Delete an API key; clients presenting it are rejected from then on.

        Args:
            app_guid: Application GUID (app_xxx)
            key_guid: API key GUID (key_xxx)

        Raises:
            NotFoundError: If the application does not exist, or the key
                does not exist or belongs to another application
        """
        try:
            app_uuid = Application.parse_guid(app_guid)
            key_uuid = ApiKey.parse_guid(key_guid)
        except ValueError:
            raise NotFoundError("API key", key_guid)

        api_key = (
            self.db.query(ApiKey)
            .join(Application, ApiKey.app_id == Application.id)
            .filter(Application.uuid == app_uuid, ApiKey.uuid == key_uuid)
            .first()
        )
        if not api_key:
            raise NotFoundError("API key", key_guid)

        name = api_key.name
        self.db.delete(api_key)
        self.db.commit()

        logger.info(
            f"Revoked API key '{name}' ({key_guid})",
            extra={"app_guid": app_guid}
        )
