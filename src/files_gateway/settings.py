# src/files_gateway/settings.py
from functools import lru_cache
from typing import List, Optional

import boto3
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from files_gateway.naming import NamingPolicy

DEFAULT_MAX_UPLOAD_BYTES = 20 * 1024 * 1024


class Settings(BaseSettings):
    """
    Single source of truth for all application settings.

    Configuration precedence:
    1. Environment variables (highest priority)
    2. .env file (if exists)
    3. Default values in this class (lowest priority)

    The storage identity, credential and bucket have no defaults: building a
    ``Settings`` without them raises a ``pydantic.ValidationError`` so the
    process fails at startup instead of on the first request.

    Usage:
        from files_gateway.settings import get_settings
        settings = get_settings()
        bucket_name = settings.s3_bucket_name
    """

    # Application Settings
    app_name: str = Field(
        default="files-gateway",
        description="Application name"
    )

    # Storage account identity and credential
    aws_access_key_id: str = Field(
        alias="AWS_ACCESS_KEY_ID",
        description="Access key id of the storage account"
    )

    aws_secret_access_key: str = Field(
        alias="AWS_SECRET_ACCESS_KEY",
        description="Secret access key of the storage account"
    )

    # Target container
    s3_bucket_name: str = Field(
        alias="S3_BUCKET_NAME",
        description="Bucket holding the stored files"
    )

    aws_region: str = Field(
        default="us-east-1",
        alias="AWS_DEFAULT_REGION"
    )

    aws_endpoint_url: Optional[str] = Field(
        default=None,
        alias="AWS_ENDPOINT_URL",
        description="Custom endpoint for S3-compatible backends (MinIO, moto server)"
    )

    # Upload policy
    max_upload_bytes: int = Field(
        default=DEFAULT_MAX_UPLOAD_BYTES,
        gt=0,
        description="Largest accepted upload payload in bytes"
    )

    naming_policy: NamingPolicy = Field(
        default=NamingPolicy.TIMESTAMP,
        description="How stored object names are derived: preserve, sanitize or timestamp"
    )

    container_check_ttl: float = Field(
        default=0.0,
        ge=0.0,
        description="Seconds a successful bucket existence check is reused; 0 checks on every call"
    )

    # HTTP
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Origins allowed by the CORS middleware"
    )

    port: int = Field(
        default=8080,
        description="Port used by `files-gateway serve`"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    @field_validator("aws_access_key_id", "aws_secret_access_key", "s3_bucket_name")
    @classmethod
    def reject_blank(cls, v: str) -> str:
        """Blank values count as missing."""
        if not v or not v.strip():
            raise ValueError("must not be blank")
        return v.strip()

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        v = v.upper()
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v not in valid_levels:
            raise ValueError(f"Invalid log_level: {v}. Must be one of {valid_levels}")
        return v

    def masked(self) -> dict:
        """Settings as a dict with the secret key hidden, for display."""
        values = self.model_dump()
        values["aws_secret_access_key"] = "****"
        return values

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    This ensures we only create one Settings instance per process.
    """
    return Settings()


def create_s3_client(settings: Settings):
    """Build the boto3 S3 client shared by every request."""
    client_kwargs = {
        "region_name": settings.aws_region,
        "aws_access_key_id": settings.aws_access_key_id,
        "aws_secret_access_key": settings.aws_secret_access_key,
    }
    if settings.aws_endpoint_url:
        client_kwargs["endpoint_url"] = settings.aws_endpoint_url
    return boto3.client("s3", **client_kwargs)
