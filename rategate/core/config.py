"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import Field
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


# Nested BaseSettings don't inherit env_file, so populate os.environ up front
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


StoreFailureMode = Literal["open", "closed"]
CounterBackend = Literal["redis", "memory"]
IdentitySource = Literal["header", "client_ip"]


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    Pydantic Settings (v2) populates values from environment variables, but
    static type checkers treat required fields as constructor arguments.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_rate_limit_settings() -> "RateLimitSettings":
    """Build rate limit settings from environment.

    See _build_app_settings() for rationale about the type ignore.
    """

    return RateLimitSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Rate limiter configuration.

    ``store_failure_mode`` is deliberately required: a counter store outage
    either lets every request through (``open``) or rejects every protected
    request (``closed``), and the deployment has to pick one.
    """

    enabled: bool = Field(
        True,
        description="Global switch; when false no route is rate limited",
    )
    backend: CounterBackend = Field(
        "redis",
        description="Counter store backend: 'redis' (shared) or 'memory' (single process)",
    )
    redis_url: str = Field(
        "redis://localhost:6379/0",
        description="Redis connection URL for the shared counter store",
    )
    key_prefix: str = Field(
        "rate-limit",
        description="Namespace prepended to every counter key",
    )
    identity_source: IdentitySource = Field(
        "header",
        description="Where the requester identity comes from: 'header' or 'client_ip'",
    )
    identity_header: str = Field(
        "X-API-Key",
        description="Header carrying the requester identity when identity_source is 'header'",
    )
    default_limit: int = Field(
        10,
        description="Requests allowed per window when a route declares no rate",
        ge=1,
    )
    default_window_seconds: int = Field(
        60,
        description="Window length in seconds when a route declares no rate",
        ge=1,
    )
    store_timeout_seconds: float = Field(
        0.5,
        description="Upper bound for a single counter store round-trip",
        gt=0,
    )
    store_failure_mode: StoreFailureMode = Field(
        ...,
        description="Behavior when the counter store is unreachable: 'open' or 'closed'",
    )
    include_retry_after: bool = Field(
        True,
        description="Add a Retry-After header to 429 responses",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: Literal["json", "plain"] = Field(
        "json",
        description="Log line format",
    )
    output: Literal["stdout", "file"] = Field(
        "stdout",
        description="Where log lines are written",
    )
    file_path: str | None = Field(
        None,
        description="Log file path when output is 'file'",
    )
    max_bytes: int = Field(
        0,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(
        5,
        description="Rotated log files to keep",
        ge=0,
    )
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header carrying the correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if required settings are missing.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    rate_limit: RateLimitSettings = Field(default_factory=_build_rate_limit_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
