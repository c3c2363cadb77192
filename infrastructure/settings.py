"""Centralized application settings.

All runtime configuration is read here once and handed to the services as an
immutable :class:`AppSettings` snapshot, so no module reaches for
``os.getenv`` on its own.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache
from typing import Mapping, Optional

import pytz
from dotenv import load_dotenv

from . import constants as app_constants

VALID_CONFLICT_POLICIES = ("closed", "open", "raise")


def _to_bool(value: Optional[str], default: bool = False) -> bool:
    """Normalize environment strings such as "true"/"1" into booleans."""

    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _to_int(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def _to_float(value: Optional[str], default: float) -> float:
    try:
        return float(value) if value is not None else default
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class AppSettings:
    """Immutable snapshot of high-level configuration values."""

    production_mode: bool
    timezone: str
    auto_accept_delay_minutes: float
    auto_accept_poll_seconds: float
    conflict_failure_policy: str
    message_cache_ttl_hours: float
    message_cache_max_messages: int
    message_cache_max_conversations: int
    reservations_file: str
    message_cache_file: str
    log_directory: str

    @property
    def tz(self):
        return pytz.timezone(self.timezone)

    @property
    def auto_accept_delay(self) -> timedelta:
        return timedelta(minutes=self.auto_accept_delay_minutes)

    @property
    def message_cache_ttl(self) -> timedelta:
        return timedelta(hours=self.message_cache_ttl_hours)


def load_settings(env: Optional[Mapping[str, str]] = None) -> AppSettings:
    """Load configuration from the environment and fall back to defaults."""

    if env is None:
        load_dotenv(override=False)
        env = os.environ

    production_mode = _to_bool(env.get("PRODUCTION_MODE", "false"), default=False)

    timezone = env.get("BOOKING_TIMEZONE", app_constants.DEFAULT_TIMEZONE)
    try:
        pytz.timezone(timezone)
    except pytz.UnknownTimeZoneError:
        timezone = app_constants.DEFAULT_TIMEZONE

    auto_accept_delay_minutes = _to_float(
        env.get("AUTO_ACCEPT_DELAY_MINUTES"), app_constants.AUTO_ACCEPT_DELAY_MINUTES
    )
    auto_accept_poll_seconds = _to_float(
        env.get("AUTO_ACCEPT_POLL_SECONDS"), app_constants.AUTO_ACCEPT_POLL_SECONDS
    )

    conflict_failure_policy = env.get(
        "CONFLICT_FAILURE_POLICY", app_constants.DEFAULT_CONFLICT_FAILURE_POLICY
    ).strip().lower()
    if conflict_failure_policy not in VALID_CONFLICT_POLICIES:
        conflict_failure_policy = app_constants.DEFAULT_CONFLICT_FAILURE_POLICY

    message_cache_ttl_hours = _to_float(
        env.get("MESSAGE_CACHE_TTL_HOURS"), app_constants.MESSAGE_CACHE_TTL_HOURS
    )
    message_cache_max_messages = _to_int(
        env.get("MESSAGE_CACHE_MAX_MESSAGES"), app_constants.MESSAGE_CACHE_MAX_MESSAGES
    )
    message_cache_max_conversations = _to_int(
        env.get("MESSAGE_CACHE_MAX_CONVERSATIONS"),
        app_constants.MESSAGE_CACHE_MAX_CONVERSATIONS,
    )

    reservations_file = env.get("RESERVATIONS_FILE", app_constants.DEFAULT_RESERVATIONS_FILE)
    message_cache_file = env.get("MESSAGE_CACHE_FILE", app_constants.DEFAULT_MESSAGE_CACHE_FILE)
    log_directory = env.get("LOG_DIRECTORY", app_constants.DEFAULT_LOG_DIRECTORY)

    return AppSettings(
        production_mode=production_mode,
        timezone=timezone,
        auto_accept_delay_minutes=auto_accept_delay_minutes,
        auto_accept_poll_seconds=auto_accept_poll_seconds,
        conflict_failure_policy=conflict_failure_policy,
        message_cache_ttl_hours=message_cache_ttl_hours,
        message_cache_max_messages=message_cache_max_messages,
        message_cache_max_conversations=message_cache_max_conversations,
        reservations_file=reservations_file,
        message_cache_file=message_cache_file,
        log_directory=log_directory,
    )


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Return a cached :class:`AppSettings` instance."""

    return load_settings()
