"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Production may inject everything via env vars only
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ up front
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class RoutePolicy(BaseModel):
    """Quota applied to every endpoint starting with ``endpoint``."""

    endpoint: str = Field(..., min_length=1, description="Endpoint prefix, e.g. /auth/login")
    limit: int = Field(..., ge=1, description="Max requests per window per client")
    window_seconds: int = Field(..., ge=1, description="Window length in seconds")


DEFAULT_ROUTE_POLICIES: list[RoutePolicy] = [
    RoutePolicy(endpoint="/auth/login", limit=5, window_seconds=300),
    RoutePolicy(endpoint="/api/appointments", limit=100, window_seconds=60),
    RoutePolicy(endpoint="/api/inventory", limit=200, window_seconds=60),
    RoutePolicy(endpoint="/api/reports", limit=50, window_seconds=60),
]


class LimiterSettings(BaseSettings):
    """Rate limiter defaults, cleanup schedule and per-route policies."""

    default_limit: int = Field(
        100,
        description="Maximum admitted requests per window when no override is given",
        ge=1,
    )
    window_ms: int = Field(
        60_000,
        description="Fixed window length in milliseconds",
        ge=1,
    )
    cleanup_enabled: bool = Field(
        True,
        description="Run the periodic sweep of expired entries while the app is up",
    )
    cleanup_interval_seconds: float = Field(
        300.0,
        description="Seconds between sweeps of expired entries",
        gt=0,
    )
    routes: list[RoutePolicy] = Field(
        default_factory=lambda: [p.model_copy() for p in DEFAULT_ROUTE_POLICIES],
        description="Per-route policies as a JSON list; first matching prefix wins",
    )

    model_config = SettingsConfigDict(
        env_prefix="LIMITER_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    api_key_required: bool = Field(
        True,
        description="Whether API key authentication is required",
    )
    api_keys: str | None = Field(
        None,
        description="Comma-separated list of valid API keys for authentication",
    )
    rate_limit_enabled: bool = Field(
        True,
        description="Throttle callers of this service per API key (or client IP)",
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="'json' or 'plain'")
    output: str = Field("stdout", description="'stdout' or 'file'")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        0,
        description="Rotate the log file at this size (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and echo the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


def _build_limiter_settings() -> LimiterSettings:
    return LimiterSettings()


def _build_app_settings() -> AppSettings:
    return AppSettings()


def _build_log_settings() -> LogSettings:
    return LogSettings()


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if a value is malformed.
    """

    app_env: str = APP_ENV
    limiter: LimiterSettings = Field(default_factory=_build_limiter_settings)
    app: AppSettings = Field(default_factory=_build_app_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Nested settings are created via default_factory so env loading works.
settings = Settings()
