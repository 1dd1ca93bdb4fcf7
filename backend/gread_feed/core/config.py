"""
Centralized configuration management using Pydantic Settings.

This module provides type-safe configuration for the feed engine,
loading settings from GREAD_-prefixed environment variables and .env files.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class Settings(BaseSettings):
    """
    Feed engine settings loaded from environment variables.

    All settings can be overridden via environment variables prefixed with
    GREAD_ (e.g. GREAD_PAGE_SIZE=50). The auth token should live in a
    gitignored .env file, never in code.
    """

    # Backend endpoints
    api_base_url: str = Field(
        default="https://gread.fun/wp-json/buddypress/v1",
        description="BuddyPress REST base URL (activity feed, deletion)"
    )
    custom_api_base_url: str = Field(
        default="https://gread.fun/wp-json/gread/v1",
        description="GRead plugin REST base URL (moderation lists and actions)"
    )
    auth_token: Optional[str] = Field(
        default=None,
        description="JWT bearer token for authenticated endpoints"
    )

    # Feed paging
    page_size: int = Field(
        default=20,
        ge=1,
        le=100,
        description="Activities requested per page; a shorter page ends the feed"
    )
    max_thread_depth: int = Field(
        default=64,
        ge=1,
        description="Maximum comment nesting depth kept during reconstruction"
    )

    # HTTP behaviour
    request_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout applied to every backend request"
    )
    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Retries for transient failures (timeouts, 429, 5xx)"
    )
    retry_base_delay: float = Field(
        default=1.0,
        ge=0,
        description="Initial backoff delay in seconds"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Root log level"
    )
    log_json: bool = Field(
        default=True,
        description="Emit single-line JSON logs (False for plain text)"
    )

    model_config = SettingsConfigDict(
        env_prefix="GREAD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("api_base_url", "custom_api_base_url")
    @classmethod
    def validate_base_url(cls, v: str, info) -> str:
        """
        Validate a backend base URL.

        Requires an http(s) scheme and strips trailing slashes so endpoint
        paths can be appended directly.
        """
        if not v or v.strip() == "":
            raise ValueError(f"{info.field_name.upper()} is required and cannot be empty")

        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError(
                f"{info.field_name.upper()} must start with http:// or https://. "
                f"Got: {v[:20]}..."
            )
        return v.rstrip("/")

    @field_validator("auth_token")
    @classmethod
    def normalize_auth_token(cls, v: Optional[str]) -> Optional[str]:
        """Treat a blank token as no token."""
        if v is None or v.strip() == "":
            return None
        return v.strip()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"LOG_LEVEL must be one of: {', '.join(VALID_LOG_LEVELS)}. Got: {v}"
            )
        return level


@lru_cache
def get_settings() -> Settings:
    """
    Return the process-wide settings, loaded on first use.

    Call get_settings.cache_clear() after changing the environment (tests).
    """
    return Settings()
