"""
Pydantic schemas for orphan cleanup endpoints.
"""

from typing import List

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class CleanupRequest(BaseModel):
    """Body of POST /api/admin/cleanup. Defaults to a dry run."""

    dry_run: bool = Field(default=True, description="Report orphans without deleting")

    model_config = {"alias_generator": to_camel, "populate_by_name": True}


class CleanupResponse(BaseModel):
    """Result of a reconciliation pass."""

    orphaned_files: List[str] = Field(default_factory=list)
    deleted_files: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    skipped_files: List[str] = Field(
        default_factory=list,
        description="Unreferenced objects left alone (too recent or re-referenced)"
    )
    missing_files: List[str] = Field(
        default_factory=list,
        description="Objects referenced by file records but absent from storage"
    )
    dry_run: bool = True

    model_config = {"alias_generator": to_camel, "populate_by_name": True}


class CleanupPreviewResponse(BaseModel):
    """Result of GET /api/admin/cleanup."""

    orphaned_files: List[str] = Field(default_factory=list)
    count: int = 0

    model_config = {"alias_generator": to_camel, "populate_by_name": True}
