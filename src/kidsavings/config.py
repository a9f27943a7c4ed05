"""Environment driven configuration for KidSavings."""
from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, tzinfo
from pathlib import Path
from typing import Callable, Mapping, Optional
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

load_dotenv()

DEFAULT_SQLITE_FILE_NAME = "kidsavings.db"
DEFAULT_TIMEZONE = "UTC"
MAX_NAME_LENGTH = 50
MIN_NAME_LENGTH = 1
MAX_DESCRIPTION_LENGTH = 100
MAX_INTEREST_PERCENTAGE = 100
MIN_INTEREST_PERCENTAGE = 0

Clock = Callable[[], datetime]


@dataclass(frozen=True, slots=True)
class Settings:
    sqlite_file_name: str = DEFAULT_SQLITE_FILE_NAME
    timezone: str = DEFAULT_TIMEZONE
    log_path: Optional[Path] = None

    @property
    def database_url(self) -> str:
        return f"sqlite:///{self.sqlite_file_name}"

    @property
    def tz(self) -> tzinfo:
        return ZoneInfo(self.timezone)


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build :class:`Settings` from ``environ`` (defaults to ``os.environ``)."""

    env = os.environ if environ is None else environ
    log_path = env.get("KIDSAVINGS_LOG_PATH")
    return Settings(
        sqlite_file_name=env.get("KIDSAVINGS_SQLITE", DEFAULT_SQLITE_FILE_NAME),
        timezone=env.get("KIDSAVINGS_TIMEZONE", DEFAULT_TIMEZONE),
        log_path=Path(log_path) if log_path else None,
    )


def system_clock(tz: tzinfo) -> Clock:
    """Return a millisecond resolution ``now()`` provider for the device clock in ``tz``."""

    def now() -> datetime:
        moment = datetime.now(tz)
        return moment.replace(microsecond=moment.microsecond // 1000 * 1000)

    return now


__all__ = [
    "Clock",
    "DEFAULT_SQLITE_FILE_NAME",
    "DEFAULT_TIMEZONE",
    "MAX_DESCRIPTION_LENGTH",
    "MAX_INTEREST_PERCENTAGE",
    "MAX_NAME_LENGTH",
    "MIN_INTEREST_PERCENTAGE",
    "MIN_NAME_LENGTH",
    "Settings",
    "load_settings",
    "system_clock",
]
