"""
SQLAlchemy models for the update distribution service.

This module provides the declarative base class and imports all models
to ensure they are registered with SQLAlchemy's metadata.
"""

from sqlalchemy.orm import declarative_base

# All models inherit from this Base class
Base = declarative_base()


# Import all models here so they are registered with Base.metadata
# This is required for Alembic autogenerate to detect models
from backend.src.models.application import Application
from backend.src.models.release import Release
from backend.src.models.release_file import ReleaseFile
from backend.src.models.api_key import ApiKey
from backend.src.models.rollout_tracking import RolloutTracking
from backend.src.models.download_stat import DownloadStat, DownloadEventType

__all__ = [
    "Base",
    "Application",
    "Release",
    "ReleaseFile",
    "ApiKey",
    "RolloutTracking",
    "DownloadStat",
    "DownloadEventType",
]
