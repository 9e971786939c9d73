"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


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

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ first.
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    BaseSettings populates fields from the environment; static type checkers
    still treat them as constructor arguments, hence the ignore.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


class LogSettings(BaseSettings):
    """Logging configuration (format, destination, correlation header)."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field(
        "json",
        description="Log format: 'json' for structured logs, 'plain' for humans",
    )
    output: str = Field("stdout", description="Log destination: stdout or file")
    file_path: str | None = Field(
        None,
        description="Log file path when output=file (default logs/app.log)",
    )
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
    )
    backup_count: int = Field(5, description="Number of rotated files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to receive and propagate the request id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
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
        description="Whether API key authentication is required on admin routes",
    )
    api_keys: str | None = Field(
        None,
        description="Comma-separated list of valid admin API keys",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable per-client throttling of account actions",
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include Retry-After and X-RateLimit-Limit headers when throttling",
    )
    rate_limit_sweep_interval_seconds: float = Field(
        60.0,
        description="How often expired limiter records are swept from memory",
        gt=0,
    )
    trust_forwarded_for: bool = Field(
        True,
        description="Derive the client key from the first X-Forwarded-For entry",
    )

    login_window_seconds: int = Field(15 * 60, ge=1, description="Login attempt window")
    login_max_requests: int = Field(5, ge=1, description="Login attempts per window")
    register_window_seconds: int = Field(60 * 60, ge=1, description="Registration window")
    register_max_requests: int = Field(3, ge=1, description="Registrations per window")
    password_reset_window_seconds: int = Field(
        60 * 60, ge=1, description="Password reset request window"
    )
    password_reset_max_requests: int = Field(
        3, ge=1, description="Password reset requests per window"
    )
    password_change_window_seconds: int = Field(
        15 * 60, ge=1, description="Password change attempt window"
    )
    password_change_max_requests: int = Field(
        5, ge=1, description="Password change attempts per window"
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if a setting is malformed.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


settings = Settings()
