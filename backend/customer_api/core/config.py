"""
Application configuration using pydantic-settings.

Loads settings from environment variables (and optional .env file) with sensible defaults.

Fields loaded (env var names in parentheses):
- app_env (APP_ENV)
- log_level (LOG_LEVEL)
- db_url (DB_URL or DATABASE_URL)
- customers_table (CUSTOMERS_TABLE)
- customers_default_limit (CUSTOMERS_DEFAULT_LIMIT)
- customers_max_limit (CUSTOMERS_MAX_LIMIT)
- list_cache_max_age (LIST_CACHE_MAX_AGE)
- api_base_url (API_BASE_URL)
- client_timeout_seconds (CLIENT_TIMEOUT_SECONDS)
- client_max_retries (CLIENT_MAX_RETRIES)
- cache_freshness_seconds (CACHE_FRESHNESS_SECONDS)
- cache_refresh_ratio (CACHE_REFRESH_RATIO)

Usage:
    from customer_api.core.config import get_settings
    settings = get_settings()
    print(settings.db_url)
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Environment / logging
    app_env: str = Field(default="development", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database URL (accept DB_URL or DATABASE_URL)
    db_url: str = Field(
        default="sqlite:///./customers.db",
        validation_alias=AliasChoices("DB_URL", "DATABASE_URL"),
    )

    # Physical table holding customer records (legacy or current column set)
    customers_table: str = Field(default="customers", alias="CUSTOMERS_TABLE")

    # List pagination
    customers_default_limit: int = Field(default=50, alias="CUSTOMERS_DEFAULT_LIMIT", ge=1)
    customers_max_limit: int = Field(default=200, alias="CUSTOMERS_MAX_LIMIT", ge=1)

    # Shared cache lifetime for list responses (seconds)
    list_cache_max_age: int = Field(default=60, alias="LIST_CACHE_MAX_AGE", ge=0)

    # Client-side settings
    api_base_url: str = Field(default="http://localhost:8000", alias="API_BASE_URL")
    client_timeout_seconds: float = Field(default=30.0, alias="CLIENT_TIMEOUT_SECONDS", gt=0)
    client_max_retries: int = Field(default=2, alias="CLIENT_MAX_RETRIES", ge=1)
    cache_freshness_seconds: float = Field(default=300.0, alias="CACHE_FRESHNESS_SECONDS", gt=0)
    cache_refresh_ratio: float = Field(default=0.8, alias="CACHE_REFRESH_RATIO", gt=0, le=1)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Return a cached Settings instance.
    """
    return Settings()  # type: ignore[call-arg]


__all__ = ["Settings", "get_settings"]
