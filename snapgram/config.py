"""
Configuration and settings for the Snapgram client.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the data-access layer and API."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # Appwrite platform
    appwrite_endpoint: Optional[str] = Field(default=None)
    appwrite_project_id: Optional[str] = Field(default=None)
    appwrite_api_key: Optional[str] = Field(default=None)
    appwrite_database_id: str = Field(default="snapgram")
    appwrite_user_collection_id: str = Field(default="users")
    appwrite_post_collection_id: str = Field(default="posts")
    appwrite_saves_collection_id: str = Field(default="saves")
    appwrite_storage_id: str = Field(default="media")

    # Sign-in session cookie
    session_cookie_name: str = Field(default="snapgram_session")
    session_cookie_secure: bool = Field(default=False)

    # Self-hosted document store (any SQLAlchemy URL)
    database_url: Optional[str] = Field(default=None)

    # S3-compatible file storage
    s3_endpoint: Optional[str] = Field(default=None)
    s3_region: Optional[str] = Field(default=None)
    s3_bucket: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)
    preview_url_expires_in: int = Field(default=3600, ge=60, le=604800)

    # Explore screen
    search_debounce_seconds: float = Field(default=0.5, ge=0)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
