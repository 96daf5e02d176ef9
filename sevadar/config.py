"""
Configuration and settings for the Sevadar backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # Database (Postgres expected)
    database_url: Optional[str] = Field(default=None)

    # S3-compatible storage for rendered posters and profile photos
    s3_endpoint: Optional[str] = Field(default=None)
    s3_region: Optional[str] = Field(default=None)
    s3_bucket: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, validation_alias="SEVADAR_USE_IN_MEMORY_BACKENDS"
    )

    # Queue (Redis)
    redis_url: Optional[str] = Field(default=None)
    redis_queue_key: str = Field(default="sevadar:render-jobs")

    # Posters
    poster_catalog_path: str = Field(default="data/posters.json")
    admin_footer_path: Optional[str] = Field(default="data/admin_footer.webp")
    name_font_path: Optional[str] = Field(default="data/fonts/TiroDevanagariHindi-Regular.ttf")
    status_font_path: Optional[str] = Field(default="data/fonts/Poppins-SemiBold.ttf")
    image_timeout_seconds: float = Field(default=10.0)
    # Remote photo URLs a render may fetch, besides inline data and the stored avatar
    trusted_photo_url_prefixes: List[str] = Field(default_factory=list)
    campaign_timezone: str = Field(default="Asia/Kolkata")

    # Points
    points_daily_poster: int = Field(default=10)
    points_vote: int = Field(default=5)
    points_quiz_default: int = Field(default=5)
    points_like: int = Field(default=1)
    points_share: int = Field(default=2)
    points_comment: int = Field(default=2)
    points_onboarding: int = Field(default=10)

    # Push notifications (Firebase Cloud Messaging)
    firebase_service_account_json: Optional[str] = Field(default=None)
    notification_link: str = Field(default="https://brijeshtiwari.in")
    cron_secret: Optional[str] = Field(default=None)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
