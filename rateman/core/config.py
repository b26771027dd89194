"""Configuration using Pydantic Settings.

Configuration is environment-aware:
- RATEMAN_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


RATEMAN_ENV = os.getenv("RATEMAN_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(RATEMAN_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ up front.
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


DEFAULT_KEY_PREFIX = "rateman"
MEMORY_STORE_URL = "memory://"


def _build_store_settings() -> "StoreSettings":
    return StoreSettings()  # type: ignore[call-arg]


def _build_limiter_settings() -> "LimiterSettings":
    return LimiterSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


class StoreSettings(BaseSettings):
    """Connection settings for the shared ordered-set store.

    A ``memory://`` URL selects the single-process in-memory store, anything
    else is handed to ``redis.asyncio.from_url``.
    """

    url: str = Field(
        "redis://localhost:6379/0",
        description="Redis URL, or memory:// for the in-process store",
    )
    socket_timeout_seconds: float | None = Field(
        5.0,
        description="Read/write timeout for store commands",
    )
    socket_connect_timeout_seconds: float | None = Field(
        5.0,
        description="Timeout for establishing a store connection",
    )
    health_check_interval_seconds: int = Field(
        30,
        description="Idle seconds after which the connection is health-checked before use",
        ge=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="RATEMAN_STORE_",
        case_sensitive=False,
    )

    @property
    def is_memory(self) -> bool:
        return self.url.startswith(MEMORY_STORE_URL)


class LimiterSettings(BaseSettings):
    """Defaults applied to limiters built through ``create_rate_limiter``."""

    key_prefix: str = Field(
        DEFAULT_KEY_PREFIX,
        description="Prefix of every store key, e.g. rateman:<name>:<identifier>",
        min_length=1,
    )
    record_throttled: bool = Field(
        False,
        description="Keep rejected attempts in the store so they count toward quota",
    )
    include_headers: bool = Field(
        True,
        description="Include Retry-After and X-RateLimit-Reset headers on HTTP 429",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATEMAN_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="json or plain")
    output: str = Field("stdout", description="stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        0,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated files to keep", ge=0)

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Settings container composed from the domain-specific settings."""

    rateman_env: str = RATEMAN_ENV
    store: StoreSettings = Field(default_factory=_build_store_settings)
    limiter: LimiterSettings = Field(default_factory=_build_limiter_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


@lru_cache()
def get_settings() -> Settings:
    """Return settings loaded from the environment, cached per process."""

    return Settings()
