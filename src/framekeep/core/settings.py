"""Centralized configuration using Pydantic Settings (v2).

This module exposes a single, cached `settings` instance that reads from:
- Real environment variables (highest precedence)
- `.env` files at the working directory: .env, .env.local, .env.dev/.env.test/.env.prod

All intervals are in milliseconds, matching the timestamps the scheduler hands
out. Defaults reproduce the behaviour the calculator shell ships with.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

EnvName = Literal["dev", "test", "prod"]
LogLevelName = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class Settings(BaseSettings):
    """Typed configuration loaded from env and `.env` files.

    Attributes
    ----------
    environment : EnvName
        Runtime environment flag; maps from `FRAMEKEEP_ENV`.
    log_level : LogLevelName
        Global log level string; maps from `LOG_LEVEL`.
    expected_origin : str
        The only origin whose messages the host acts on, and the target origin
        of every host → frame message.
    session_key : str
        Fixed key of the single live record in the primary tier.
    database_url : str
        SQLAlchemy URL of the structured-database tier.
    local_storage_path : Path
        JSON file backing the key/value area used by the CLI.
    """

    environment: EnvName = Field(default="dev", alias="FRAMEKEEP_ENV")
    log_level: LogLevelName = Field(default="INFO", alias="LOG_LEVEL")

    expected_origin: str = Field(
        default="https://ti89-simulator.com", alias="FRAMEKEEP_EXPECTED_ORIGIN"
    )
    session_key: str = Field(default="ti89_session", alias="FRAMEKEEP_SESSION_KEY")
    database_url: str = Field(
        default="sqlite:///artifacts/state/ti89.sqlite3", alias="FRAMEKEEP_DATABASE_URL"
    )
    local_storage_path: Path = Field(
        default=Path("artifacts") / "state" / "local_storage.json",
        alias="FRAMEKEEP_LOCAL_STORAGE",
    )
    fallback_storage_key: str = Field(
        default="ti89_calculator_state", alias="FRAMEKEEP_FALLBACK_KEY"
    )
    fallback_max_states: int = Field(default=5, ge=1, alias="FRAMEKEEP_FALLBACK_MAX_STATES")

    capture_interval_ms: int = Field(default=10_000, gt=0, alias="FRAMEKEEP_CAPTURE_INTERVAL_MS")
    auto_save_interval_ms: int = Field(
        default=30_000, gt=0, alias="FRAMEKEEP_AUTO_SAVE_INTERVAL_MS"
    )
    url_poll_interval_ms: int = Field(default=2_000, gt=0, alias="FRAMEKEEP_URL_POLL_INTERVAL_MS")
    lifecycle_auto_save_interval_ms: int = Field(
        default=10_000, gt=0, alias="FRAMEKEEP_LIFECYCLE_AUTO_SAVE_INTERVAL_MS"
    )

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local", ".env.dev", ".env.test", ".env.prod"),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def is_dev(self) -> bool:
        """Return True if running in the development environment."""
        return self.environment == "dev"

    @property
    def is_test(self) -> bool:
        """Return True if running in the test environment."""
        return self.environment == "test"

    def log_level_numeric(self) -> int:
        """Return the numeric logging level corresponding to `self.log_level`."""
        return getattr(logging, self.log_level, logging.INFO)


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Create and cache a `Settings` instance.

    We keep this behind an LRU cache so tests can force a rebuild via
    `load_settings.cache_clear()` after mutating `os.environ`.
    """
    os.environ.setdefault("FRAMEKEEP_ENV", "dev")
    return Settings()


# Export a ready-to-use singleton (import-time read of env / .env files).
settings: Settings = load_settings()


def get_logger(name: str = "framekeep") -> logging.Logger:
    """Return a process-global logger configured to the current log level."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
        )
        logger.addHandler(handler)
    logger.setLevel(load_settings().log_level_numeric())
    logger.propagate = False
    return logger


__all__ = ["Settings", "get_logger", "load_settings", "settings"]
