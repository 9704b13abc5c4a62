"""
Configuration and settings for the portfolio content backend.
"""

from __future__ import annotations

import enum
from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

CONTENT_KEY = "site_content"
DEFAULT_ADMIN_PASSWORD = "admin"


class EmptyRemotePolicy(str, enum.Enum):
    """How an empty but successful remote project list is treated."""

    # The empty list wins and is mirrored into the local cache.
    AUTHORITATIVE = "authoritative"
    # The empty list counts as a miss; lower-priority sources are consulted.
    KEEP_LOCAL = "keep_local"


def _env(*names: str) -> AliasChoices:
    return AliasChoices(*names)


class Settings(BaseSettings):
    """Environment-backed settings for the API service and the admin client."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # Remote Postgres (content + projects tables)
    database_url: Optional[str] = Field(
        default=None, validation_alias=_env("database_url", "DATABASE_URL")
    )

    # S3-compatible object storage (Supabase Storage S3 endpoint)
    storage_endpoint: Optional[str] = Field(
        default=None, validation_alias=_env("storage_endpoint", "STORAGE_ENDPOINT")
    )
    storage_region: Optional[str] = Field(
        default=None, validation_alias=_env("storage_region", "STORAGE_REGION")
    )
    storage_bucket: Optional[str] = Field(
        default=None, validation_alias=_env("storage_bucket", "STORAGE_BUCKET")
    )
    storage_public_base_url: Optional[str] = Field(
        default=None,
        validation_alias=_env("storage_public_base_url", "STORAGE_PUBLIC_BASE_URL"),
    )
    aws_access_key_id: Optional[str] = Field(
        default=None, validation_alias=_env("aws_access_key_id", "AWS_ACCESS_KEY_ID")
    )
    aws_secret_access_key: Optional[str] = Field(
        default=None,
        validation_alias=_env("aws_secret_access_key", "AWS_SECRET_ACCESS_KEY"),
    )

    # Admin gate for write endpoints (and the password the client sends)
    admin_password: str = Field(
        default=DEFAULT_ADMIN_PASSWORD,
        validation_alias=_env("admin_password", "ADMIN_PASSWORD"),
    )

    # Thin HTTP API fallback used by the admin client
    api_base_url: Optional[str] = Field(
        default=None,
        validation_alias=_env("api_base_url", "PORTFOLIO_API_BASE_URL"),
    )
    api_timeout_seconds: Optional[float] = Field(
        default=None,
        validation_alias=_env("api_timeout_seconds", "PORTFOLIO_API_TIMEOUT"),
    )

    # Static site checkout holding the bundled JSON snapshot and assets
    site_root: str = Field(
        default=".", validation_alias=_env("site_root", "PORTFOLIO_SITE_ROOT")
    )

    # Local cache: JSON file, Redis, or in-memory when neither is set
    local_cache_path: Optional[str] = Field(
        default=None,
        validation_alias=_env("local_cache_path", "PORTFOLIO_LOCAL_CACHE_PATH"),
    )
    redis_url: Optional[str] = Field(
        default=None, validation_alias=_env("redis_url", "REDIS_URL")
    )
    redis_key_prefix: str = Field(
        default="portfolio:",
        validation_alias=_env("redis_key_prefix", "REDIS_KEY_PREFIX"),
    )

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False,
        validation_alias=_env(
            "use_in_memory_backends", "PORTFOLIO_USE_IN_MEMORY_BACKENDS"
        ),
    )

    empty_remote_projects: EmptyRemotePolicy = Field(
        default=EmptyRemotePolicy.AUTHORITATIVE,
        validation_alias=_env(
            "empty_remote_projects", "PORTFOLIO_EMPTY_REMOTE_PROJECTS"
        ),
    )

    # Gallery limits, enforced before any upload
    gallery_max_files: int = Field(default=10, ge=0)
    gallery_max_file_size: int = Field(default=5 * 1024 * 1024, ge=0)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
