"""Application configuration."""
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Telnyx
    telnyx_api_key: str = ""
    telnyx_webhook_secret: Optional[str] = None
    telnyx_api_base_url: str = "https://api.telnyx.com/v2"
    telnyx_voice: str = "female"
    telnyx_language: str = "en-US"

    # Database
    database_url: str

    # Business
    business_timezone: str = "UTC"
    knowledge_base_file: Optional[str] = None

    # Call sessions
    session_idle_timeout_seconds: int = 30 * 60
    session_reap_interval_seconds: int = 5 * 60

    # Notifications
    notification_queue_size: int = 100

    # Logging
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


settings = Settings()
