"""Configuration settings for the commission tracker."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class TrackerSettings(BaseSettings):
    """Tracker settings read from environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Data store (PostgREST endpoint of the hosted database)
    supabase_url: str = Field(
        default="http://localhost:54321", validation_alias="SUPABASE_URL"
    )
    supabase_service_key: SecretStr = Field(..., validation_alias="SUPABASE_SERVICE_KEY")

    # Chat service
    slack_api_url: str = Field(
        default="https://slack.com/api", validation_alias="SLACK_API_URL"
    )
    slack_bot_token: SecretStr | None = Field(default=None, validation_alias="SLACK_BOT_TOKEN")
    slack_channel_id: str | None = Field(default=None, validation_alias="SLACK_CHANNEL_ID")
    slack_reconciliation_channel_id: str | None = Field(
        default=None, validation_alias="SLACK_RECONCILIATION_CHANNEL_ID"
    )

    # Identity provider
    clerk_api_url: str = Field(
        default="https://api.clerk.com/v1", validation_alias="CLERK_API_URL"
    )
    clerk_secret_key: SecretStr | None = Field(default=None, validation_alias="CLERK_SECRET_KEY")

    # Outbound HTTP policy: explicit timeout, retry once
    http_timeout: float = Field(default=10.0, validation_alias="HTTP_TIMEOUT")
    http_max_retries: int = Field(default=1, validation_alias="HTTP_MAX_RETRIES")

    # Reference data
    payroll_calendar_path: Path | None = Field(
        default=None, validation_alias="PAYROLL_CALENDAR_PATH"
    )

    # Web surface
    api_host: str = Field(default="0.0.0.0", validation_alias="API_HOST")
    api_port: int = Field(default=8080, validation_alias="API_PORT")

    # Business hours for notifications are judged in the agent's wall-clock time
    business_timezone: str = Field(default="America/New_York", validation_alias="BUSINESS_TIMEZONE")

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", validation_alias="LOG_LEVEL"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", validation_alias="LOG_FORMAT"
    )

    @property
    def reconciliation_channel(self) -> str | None:
        """Channel for reconciliation traffic, falling back to the general one."""
        return self.slack_reconciliation_channel_id or self.slack_channel_id


@lru_cache
def get_settings() -> TrackerSettings:
    """Get cached settings instance."""
    return TrackerSettings()
