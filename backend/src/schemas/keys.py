"""
Pydantic schemas for API key issuance.

The plaintext key appears in exactly one response (creation) and is never
retrievable afterwards.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class ApiKeyCreate(BaseModel):
    """Schema for creating an API key."""

    name: str = Field(..., min_length=1, max_length=100, description="Label for the key")
    expires_in_days: Optional[int] = Field(
        default=None,
        ge=1,
        le=3650,
        description="Days until expiry (omit for a non-expiring key)"
    )

    model_config = {"alias_generator": to_camel, "populate_by_name": True}


class ApiKeyCreatedResponse(BaseModel):
    """Created key, including the plaintext shown this one time."""

    guid: str = Field(..., description="API key GUID (key_xxx)")
    name: str
    key: str = Field(..., description="Plaintext key. Store it now: it cannot be retrieved again")
    key_prefix: str = Field(..., description="Leading characters for identification")
    expires_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"alias_generator": to_camel, "populate_by_name": True}
