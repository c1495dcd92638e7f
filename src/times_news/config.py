"""Configuration management for Times News."""

from functools import lru_cache

from pydantic import Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from times_news.constants import (
    DEFAULT_ACTIVITY_WINDOW_MINUTES,
    SLACK_API_BASE,
    TIMES_CHANNEL_PREFIX,
)
from times_news.errors import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Slack
    slack_bot_token: SecretStr = Field(description="Slack bot token (xoxb-...)")
    slack_bot_user_id: str = Field(
        min_length=1, description="User ID of the bot; its membership marks a watched channel"
    )
    slack_times_news_channel_id: str = Field(
        min_length=1, description="Channel the activity digest is posted to"
    )
    slack_signing_secret: SecretStr | None = Field(
        default=None, description="Signing secret used to verify inbound Slack requests"
    )
    slack_api_base_url: str = Field(default=SLACK_API_BASE, description="Slack Web API base URL")
    slack_timeout: float = Field(default=30.0, gt=0, description="Slack API timeout in seconds")
    slack_max_retries: int = Field(
        default=3, ge=0, description="Retries for rate-limited Slack API calls"
    )

    # Digest
    times_channel_prefix: str = Field(
        default=TIMES_CHANNEL_PREFIX, min_length=1, description="Name prefix of times channels"
    )
    activity_window_minutes: int = Field(
        default=DEFAULT_ACTIVITY_WINDOW_MINUTES,
        gt=0,
        description="Trailing window counted by the digest",
    )
    collect_secret: SecretStr | None = Field(
        default=None, description="Shared secret required by the /collect trigger"
    )

    # Server
    server_host: str = Field(default="0.0.0.0", description="HTTP server bind host")
    server_port: int = Field(default=8080, description="HTTP server port")

    # Application
    environment: str = Field(default="production", description="Environment name")
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("slack_bot_token")
    @classmethod
    def token_not_empty(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().strip():
            raise ValueError("slack_bot_token must not be empty")
        return value

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment.lower() == "development"


def load_settings() -> Settings:
    """Build settings from the environment.

    Raises:
        ConfigurationError: If a required setting is missing or invalid.
    """
    try:
        return Settings()
    except ValidationError as exc:
        missing = [".".join(str(p) for p in err["loc"]) for err in exc.errors()]
        raise ConfigurationError(f"invalid or missing settings: {', '.join(missing)}") from exc


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return load_settings()
