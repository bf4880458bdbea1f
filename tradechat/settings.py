"""Client settings using pydantic-settings.

Loads configuration from environment variables with .env file support.
"""

from functools import lru_cache
from typing import Literal
from urllib.parse import urlparse

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ALLOWED_SCHEMES = {"http", "https"}


class Settings(BaseSettings):
    """Client configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    environment: Literal["development", "staging", "production", "testing"] = "development"
    debug: bool = Field(
        default=False,
        description="Ask the backend for verbose/debug output",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Backend
    api_url: str = Field(
        default="http://localhost:8000/api",
        description="Base URL for the chat endpoints",
        validation_alias=AliasChoices("api_url", "next_public_api_url"),
    )
    stream_endpoint: str = Field(default="/stream", description="General chat turns")
    recommend_endpoint: str = Field(
        default="/recommend",
        description="Curated recommendation turns",
    )
    monitoring_endpoint: str = Field(default="/monitoring_status")

    # Timeouts (seconds)
    request_timeout: float = Field(default=30.0, gt=0)
    stream_timeout: float = Field(default=900.0, gt=0)
    connect_timeout: float = Field(default=10.0, gt=0)

    # Monitoring panel
    monitoring_poll_interval: float = Field(default=2.0, gt=0)

    @field_validator("api_url")
    @classmethod
    def _check_api_url(cls, value: str) -> str:
        scheme = urlparse(value).scheme
        if scheme not in _ALLOWED_SCHEMES:
            msg = f"Invalid URL scheme '{scheme}'. Only {sorted(_ALLOWED_SCHEMES)} allowed."
            raise ValueError(msg)
        return value.rstrip("/")

    @field_validator("stream_endpoint", "recommend_endpoint", "monitoring_endpoint")
    @classmethod
    def _leading_slash(cls, value: str) -> str:
        return value if value.startswith("/") else f"/{value}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# The cached function itself, still reachable while get_settings is patched
_cached_get_settings = get_settings


def reset_settings() -> None:
    """Drop the cached settings (tests and CLI overrides)."""
    _cached_get_settings.cache_clear()
