"""Application configuration settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = ".env"
ENV_FILE_ENCODING = "utf-8"

MIN_FETCH_LIMIT = 5
MAX_FETCH_LIMIT = 50


class Settings(BaseSettings):
    """Engine configuration values loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE, env_file_encoding=ENV_FILE_ENCODING, extra="ignore"
    )

    api_base_url: str = Field(
        default="http://localhost:5001/api",
        description="Base URL of the domain services exposing the list endpoints",
        min_length=1,
    )
    push_url: str = Field(
        default="ws://localhost:5001/ws",
        description="Websocket URL of the push transport",
        min_length=1,
    )
    feed_max_items: int = Field(
        default=50,
        description="Maximum number of activity items retained by the aggregator",
        gt=0,
    )
    fetch_limit: int = Field(
        default=50,
        description="Number of recent records requested from every gateway",
        ge=MIN_FETCH_LIMIT,
        le=MAX_FETCH_LIMIT,
    )
    counter_refresh_interval_seconds: float = Field(
        default=60.0,
        description="Seconds between two reconciliations of the unread counters",
        gt=0,
    )
    http_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout applied to every gateway request",
        gt=0,
    )
    transport_queue_size: int = Field(
        default=256,
        description="Capacity of the buffer between the push receive loop and its subscribers",
        gt=0,
    )
    read_state_database_url: str = Field(
        default="sqlite:///./activity_hub.db",
        description="SQLAlchemy URL of the durable client storage holding read marks",
        min_length=1,
    )
    app_timezone: str = Field(
        default="UTC",
        description="Timezone used to compute the 'today' partition of the feed",
    )

    @model_validator(mode="after")
    def _validate_urls(self) -> "Settings":
        if not self.push_url.startswith(("ws://", "wss://", "http://", "https://")):
            raise ValueError("PUSH_URL must be a websocket or http URL")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the settings cache to force reloading from the environment."""

    get_settings.cache_clear()


__all__ = [
    "MAX_FETCH_LIMIT",
    "MIN_FETCH_LIMIT",
    "Settings",
    "get_settings",
    "reset_settings_cache",
]
