"""
Application settings configuration for UpdateHub.

Centralized settings loaded from environment variables.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class AppSettings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment Variables:
        S3_ENDPOINT: Internal object storage endpoint used for listing and deletes
        S3_PUBLIC_ENDPOINT: Endpoint clients reach; presigned URLs are signed for it
        S3_REGION: Storage region (default: us-east-1)
        S3_ACCESS_KEY_ID / S3_SECRET_ACCESS_KEY: Storage credentials
        S3_BUCKET: Bucket holding release binaries (default: releases)
        UPDATEHUB_ADMIN_TOKEN: Bearer token for operator endpoints (empty = operator API disabled)
        UPDATEHUB_DOWNLOAD_URL_EXPIRY_SECONDS: Lifetime of presigned download URLs (default: 3600)
        UPDATEHUB_UPLOAD_URL_EXPIRY_SECONDS: Lifetime of presigned upload URLs (default: 3600)
        UPDATEHUB_MANIFEST_CACHE_SECONDS: Cache-Control max-age of manifests (default: 60)
        UPDATEHUB_CLEANUP_ENABLED: Run orphan reconciliation on a schedule (default: True)
        UPDATEHUB_CLEANUP_CRON: Crontab expression for the schedule (default: daily at 02:00)
        UPDATEHUB_ORPHAN_MIN_AGE_MINUTES: Objects younger than this are never orphans (default: 60)
    """

    # Object storage
    s3_endpoint: str = Field(
        default="http://localhost:9000",
        validation_alias="S3_ENDPOINT",
    )

    s3_public_endpoint: str = Field(
        default="http://localhost:9000",
        validation_alias="S3_PUBLIC_ENDPOINT",
        description="Endpoint used when signing URLs handed to updater clients"
    )

    s3_region: str = Field(default="us-east-1", validation_alias="S3_REGION")

    s3_access_key_id: str = Field(default="minioadmin", validation_alias="S3_ACCESS_KEY_ID")

    s3_secret_access_key: str = Field(default="minioadmin", validation_alias="S3_SECRET_ACCESS_KEY")

    s3_bucket: str = Field(default="releases", validation_alias="S3_BUCKET")

    # Operator access
    admin_token: str = Field(
        default="",
        validation_alias="UPDATEHUB_ADMIN_TOKEN",
        description="Bearer token accepted by operator endpoints. Must be at least 32 characters."
    )

    # Presigned URL lifetimes
    download_url_expiry_seconds: int = Field(
        default=3600,
        validation_alias="UPDATEHUB_DOWNLOAD_URL_EXPIRY_SECONDS",
        ge=60,
        le=7 * 24 * 3600,
    )

    upload_url_expiry_seconds: int = Field(
        default=3600,
        validation_alias="UPDATEHUB_UPLOAD_URL_EXPIRY_SECONDS",
        ge=60,
        le=7 * 24 * 3600,
    )

    manifest_cache_seconds: int = Field(
        default=60,
        validation_alias="UPDATEHUB_MANIFEST_CACHE_SECONDS",
        ge=0,
        le=3600,
    )

    # Orphan reconciliation
    cleanup_enabled: bool = Field(
        default=True,
        validation_alias="UPDATEHUB_CLEANUP_ENABLED",
    )

    cleanup_cron: str = Field(
        default="0 2 * * *",
        validation_alias="UPDATEHUB_CLEANUP_CRON",
        description="Crontab expression (minute hour day month weekday)"
    )

    orphan_min_age_minutes: int = Field(
        default=60,
        validation_alias="UPDATEHUB_ORPHAN_MIN_AGE_MINUTES",
        ge=0,
        description="Unreferenced objects younger than this may belong to an upload in flight"
    )

    class Config:
        env_file = ".env"
        extra = "ignore"

    @field_validator("admin_token")
    @classmethod
    def validate_admin_token(cls, v: str) -> str:
        """Validate that the operator token is sufficiently long."""
        if v and len(v) < 32:
            raise ValueError("UPDATEHUB_ADMIN_TOKEN must be at least 32 characters")
        return v

    @field_validator("cleanup_cron")
    @classmethod
    def validate_cleanup_cron(cls, v: str) -> str:
        if len(v.split()) != 5:
            raise ValueError("UPDATEHUB_CLEANUP_CRON must have 5 fields")
        return v

    @property
    def admin_configured(self) -> bool:
        """Check if operator endpoints are enabled."""
        return bool(self.admin_token)


@lru_cache()
def get_settings() -> AppSettings:
    """
    Get cached application settings instance.

    Returns:
        AppSettings: Configured application settings from environment
    """
    return AppSettings()
