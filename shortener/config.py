"""Configuration management for the URL shortener service.

This module provides centralized configuration management using Pydantic BaseSettings
with environment variable support and caching for performance.

Flow Diagram — get_settings()
=============================
::
    ┌─────────────┐
    │  Call get_  │
    │  settings() │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Check cache  │
    │ (lru_cache)  │
    └──────┬──────┘
    HIT?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Create  │  │ Return  │
│ Settings│  │ cached  │
│ instance│  │ value   │
└─────────┘  └─────────┘

How to Use
===========
**Step 1 — Import**::
    from shortener.config import get_settings

**Step 2 — Get settings**::
    settings = get_settings()
    base = settings.BASE_URL

**Step 3 — Override through the environment**::
    export DEFAULT_VALIDITY_MINUTES=60
    export GEOLOCATION_URL="http://ip-api.com/json/{ip}"

Key Behaviours
===============
- Settings are cached after first access.
- Environment variables (and a local ``.env`` file) override defaults.
- Geolocation and remote log shipping are disabled until their URLs are set.
- ``X-Forwarded-For`` is ignored unless ``TRUST_FORWARDED_FOR`` is enabled.
- ``MAX_VALIDITY_MINUTES`` is unset by default: the server only requires a
  positive integer validity.

Classes:
    Settings:  Pydantic model for all configuration values.
"""

__all__ = ["Settings", "get_settings"]

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "url-shortener"
    APP_ENV: str = "development"
    BASE_URL: str = "http://localhost:8000"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    # Only enable behind a proxy that overwrites X-Forwarded-For.
    TRUST_FORWARDED_FOR: bool = False

    # Alias lifecycle
    DEFAULT_VALIDITY_MINUTES: int = 30
    MAX_VALIDITY_MINUTES: int | None = None

    # Alias allocation
    RANDOM_ALIAS_LENGTH: int = 6
    RANDOM_ALIAS_ATTEMPTS: int = 10
    FALLBACK_ALIAS_LENGTH: int = 8

    # Geolocation lookup ("{ip}" is substituted with the client address)
    GEOLOCATION_URL: str | None = None
    GEOLOCATION_TIMEOUT_SECONDS: float = 1.0

    # Remote structured-logging collector
    REMOTE_LOG_URL: str | None = None
    REMOTE_LOG_TOKEN: str = ""
    REMOTE_LOG_STACK: str = "backend"
    REMOTE_LOG_TIMEOUT_SECONDS: float = 5.0

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
