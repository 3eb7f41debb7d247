"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    remote_api_base_url: str = "https://api.nerdstips.com/v1"
    remote_api_token: str | None = None
    health_store_base_url: str
    health_store_token: str | None = None
    supabase_url: str
    supabase_service_key: str
    profile_id: str = "default"
    timezone: str = "UTC"
    http_timeout_seconds: float = 30.0
    catalog_ttl_seconds: int = 300
    enhanced_suggestion_days: int = 14
    comprehensive_suggestion_days: int = 30
    recommendation_window_days: int = 7
    recommendation_limit: int = 10
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
