"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file

Every group is validated when ``Settings()`` is built at import time. Invalid
rate limit budgets or windows raise ``pydantic.ValidationError`` there, so a
misconfigured process refuses to start instead of failing per request.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ first
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class RateLimitSettings(BaseSettings):
    """Per-tier request budgets and the shared window length."""

    enabled: bool = Field(
        True,
        description="Enable tiered rate limiting middleware",
    )
    window_ms: int = Field(
        60_000,
        description="Window length in milliseconds shared by all tiers",
        gt=0,
    )
    max_public: int = Field(
        100,
        description="Maximum requests per window for public endpoints",
        gt=0,
    )
    max_auth: int = Field(
        5,
        description="Maximum requests per window for sign-in/sign-up/logout endpoints",
        gt=0,
    )
    max_upload: int = Field(
        10,
        description="Maximum requests per window for file upload endpoints",
        gt=0,
    )
    max_user_api: int = Field(
        1000,
        description="Maximum requests per window for authenticated user API endpoints",
        gt=0,
    )
    include_headers: bool = Field(
        True,
        description="Include RateLimit-* and Retry-After headers on responses",
    )
    ipv6_subnet: int = Field(
        56,
        description="Prefix length IPv6 client addresses are collapsed to",
        ge=1,
        le=128,
    )
    store_prefix: str = Field(
        "ratelimit",
        description="Key namespace for window counters in the shared store",
        min_length=1,
    )
    probe_interval_seconds: float = Field(
        5.0,
        description="Minimum delay between store reconnect probes while degraded",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class RedisSettings(BaseSettings):
    """Connection parameters for the shared key-value store."""

    backend: Literal["redis", "memory"] = Field(
        "redis",
        description="Store backend; 'memory' keeps all state in-process",
    )
    host: str = Field("localhost", description="Redis server host")
    port: int = Field(6379, description="Redis server port", gt=0, le=65535)
    password: str | None = Field(None, description="Redis server password")
    db: int = Field(0, description="Redis database number", ge=0)
    connect_timeout_seconds: float = Field(
        2.0,
        description="Timeout for establishing the connection",
        gt=0,
    )
    operation_timeout_seconds: float = Field(
        0.5,
        description="Upper bound for a single store round trip",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        case_sensitive=False,
    )


class CacheSettings(BaseSettings):
    """Per-entity cache TTLs in seconds.

    Values that are missing or not numeric resolve to None; each domain cache
    helper then applies its own hard-coded default.
    """

    ttl_cities: int | None = Field(3600, description="Cache TTL for cities")
    ttl_users: int | None = Field(7200, description="Cache TTL for users")
    ttl_rent_offers: int | None = Field(1800, description="Cache TTL for rent offers")

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        case_sensitive=False,
    )

    @field_validator("ttl_cities", "ttl_users", "ttl_rent_offers", mode="before")
    @classmethod
    def _coerce_non_numeric(cls, value: Any) -> Any:
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        try:
            return int(str(value).strip())
        except ValueError:
            return None


class AuthSettings(BaseSettings):
    """Token parameters used to resolve the authenticated principal."""

    secret: str | None = Field(
        None,
        description="Secret for verifying HS256 bearer tokens",
    )
    algorithm: str = Field("HS256", description="JWT signing algorithm")

    model_config = SettingsConfigDict(
        env_prefix="JWT_",
        case_sensitive=False,
    )


class PasswordSettings(BaseSettings):
    """Password hashing parameters."""

    bcrypt_rounds: int = Field(
        12,
        description="bcrypt work factor used when hashing user passwords",
        ge=4,
        le=31,
    )

    model_config = SettingsConfigDict(
        env_prefix="PASSWORD_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: Literal["json", "plain"] = Field("json", description="Log line format")
    output: Literal["stdout", "file"] = Field("stdout", description="Log destination")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(10 * 1024 * 1024, description="Rotate after this many bytes", ge=0)
    backup_count: int = Field(5, description="Rotated files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header carrying the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.
    """

    app_env: str = APP_ENV
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    password: PasswordSettings = Field(default_factory=PasswordSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
settings = Settings()
