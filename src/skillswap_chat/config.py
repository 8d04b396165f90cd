"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    api_token: str
    realtime_backend: str = "supabase"
    poll_interval_seconds: float = 2.0
    typing_decay_seconds: float = 3.0
    presence_heartbeat_seconds: float = 10.0
    presence_ttl_seconds: float = 30.0
    review_cas_attempts: int = 5
    cloudinary_cloud_name: str | None = None
    cloudinary_upload_preset: str | None = None
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    @property
    def media_uploads_enabled(self) -> bool:
        return bool(self.cloudinary_cloud_name and self.cloudinary_upload_preset)
