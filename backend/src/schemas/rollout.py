"""
Pydantic schemas for release rollout statistics.
"""

from typing import List

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class DailyDownloads(BaseModel):
    date: str = Field(..., description="UTC day (YYYY-MM-DD)")
    downloads: int = 0


class PlatformCount(BaseModel):
    platform: str
    count: int = 0


class RolloutStatsResponse(BaseModel):
    """
    Staged rollout and download statistics for a release.

    Fields:
        total_checks: Distinct clients that checked this release
        eligible_count: Clients whose latest check was eligible
        eligible_percentage: eligible_count / total_checks * 100
        target_percentage: Configured staging percentage
        total_downloads: Downloads within the history window
        download_history: Daily downloads for the last 30 days
        platform_breakdown: Downloads per platform
    """

    total_checks: int = 0
    eligible_count: int = 0
    eligible_percentage: float = 0.0
    target_percentage: int = 100
    total_downloads: int = 0
    download_history: List[DailyDownloads] = Field(default_factory=list)
    platform_breakdown: List[PlatformCount] = Field(default_factory=list)

    model_config = {"alias_generator": to_camel, "populate_by_name": True}
