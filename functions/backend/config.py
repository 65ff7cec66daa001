"""
Configuration and settings for the site content backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO")

    # Document store: Firestore when a project is configured, else SQL, else memory.
    firestore_project_id: Optional[str] = Field(default=None)
    database_url: Optional[str] = Field(default=None)

    # S3-compatible storage (Tencent COS) for uploaded images
    cos_endpoint: Optional[str] = Field(default=None)
    cos_region: Optional[str] = Field(default=None)
    cos_bucket: Optional[str] = Field(default=None)
    cos_public_base_url: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)
    image_upload_prefix: str = Field(default="images")
    upload_max_workers: int = Field(default=4, ge=1)

    # Read cache
    query_retry: int = Field(default=2, ge=0)
    query_stale_seconds: float = Field(default=30.0, ge=0)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
