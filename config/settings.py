"""
Application settings loaded from environment variables.
All configuration is centralized here for easy management.

Durations are given in milliseconds in the environment and exposed in
seconds on the ``Settings`` object.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

from config.constants import (
    ADMISSION_CACHE_SIZE,
    ADMISSION_COOLDOWN,
    DEFAULT_PREFIX,
    EMPTY_LEAVE_DELAY,
    PLAYBACK_TIMEOUT,
    RETRY_BACKOFF_FACTOR,
    RETRY_BASE_DELAY,
    RETRY_MAX_DELAY,
    RETRY_MAX_RETRIES,
)
from utils.retry import RetryConfig

load_dotenv()


def _parse_int(raw: Optional[str], default: int) -> int:
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _parse_float(raw: Optional[str], default: float) -> float:
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


def _ms_env(name: str, default_seconds: float) -> float:
    """Read a millisecond env var and return it in seconds."""
    return _parse_float(os.getenv(name), default_seconds * 1000) / 1000


@dataclass(frozen=True)
class Settings:
    """Immutable application settings loaded once at startup."""

    # Discord
    discord_token: str = field(default_factory=lambda: os.getenv("DISCORD_TOKEN", ""))
    command_prefix: str = field(
        default_factory=lambda: os.getenv("COMMAND_PREFIX", DEFAULT_PREFIX)
    )

    # Bot
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    # Retry / backoff
    max_retries: int = field(
        default_factory=lambda: _parse_int(os.getenv("RETRY_MAX_RETRIES"), RETRY_MAX_RETRIES)
    )
    base_delay: float = field(
        default_factory=lambda: _ms_env("RETRY_BASE_DELAY_MS", RETRY_BASE_DELAY)
    )
    max_delay: float = field(
        default_factory=lambda: _ms_env("RETRY_MAX_DELAY_MS", RETRY_MAX_DELAY)
    )
    backoff_factor: float = field(
        default_factory=lambda: _parse_float(
            os.getenv("RETRY_BACKOFF_FACTOR"), RETRY_BACKOFF_FACTOR
        )
    )
    playback_timeout: float = field(
        default_factory=lambda: _ms_env("PLAYBACK_TIMEOUT_MS", PLAYBACK_TIMEOUT)
    )

    # Admission
    cooldown: float = field(
        default_factory=lambda: _ms_env("ADMISSION_COOLDOWN_MS", ADMISSION_COOLDOWN)
    )
    admission_cache_size: int = field(
        default_factory=lambda: _parse_int(
            os.getenv("ADMISSION_CACHE_SIZE"), ADMISSION_CACHE_SIZE
        )
    )

    # Voice
    empty_leave_delay: float = field(
        default_factory=lambda: _parse_float(
            os.getenv("EMPTY_LEAVE_DELAY_S"), EMPTY_LEAVE_DELAY
        )
    )

    # Keep-alive HTTP server
    port: int = field(default_factory=lambda: _parse_int(os.getenv("PORT"), 8080))

    # ── Helpers ──────────────────────────────────────────────────────
    def retry_config(self) -> RetryConfig:
        """Build the executor configuration from these settings."""
        return RetryConfig(
            max_retries=self.max_retries,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            backoff_factor=self.backoff_factor,
        )

    def validate(self) -> List[str]:
        """Return a list of validation errors (empty = OK)."""
        errors: List[str] = []
        if not self.discord_token:
            errors.append("DISCORD_TOKEN is required")
        if not self.command_prefix:
            errors.append("COMMAND_PREFIX must not be empty")
        if self.max_retries < 1:
            errors.append("RETRY_MAX_RETRIES must be at least 1")
        if self.base_delay <= 0:
            errors.append("RETRY_BASE_DELAY_MS must be positive")
        if self.max_delay < self.base_delay:
            errors.append("RETRY_MAX_DELAY_MS must not be below RETRY_BASE_DELAY_MS")
        if self.backoff_factor <= 1:
            errors.append("RETRY_BACKOFF_FACTOR must be greater than 1")
        if self.cooldown < 0:
            errors.append("ADMISSION_COOLDOWN_MS must not be negative")
        if self.admission_cache_size < 1:
            errors.append("ADMISSION_CACHE_SIZE must be at least 1")
        if self.playback_timeout < 0:
            errors.append("PLAYBACK_TIMEOUT_MS must not be negative")
        return errors
