"""Process configuration for the ingestion worker.

Settings are read once from the environment (optionally seeded from a
``.env`` file) and passed explicitly into the services that need them::

    from dailytrends.config import Settings

    settings = Settings.from_env()
    scheduler = IngestionScheduler(service, settings.schedule_config())
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from dailytrends.models.feed import ScheduleConfig

logger = logging.getLogger(__name__)


def _truthy(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _get_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid integer for {name}={raw!r}, using {default}")
        return default


def _get_float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid number for {name}={raw!r}, using {default}")
        return default


def _get_log_level(name: str, default: str) -> str:
    raw = (os.getenv(name) or "").strip().upper()
    if not raw:
        return default
    if not isinstance(logging.getLevelName(raw), int):
        logger.warning(f"Invalid log level for {name}={raw!r}, using {default}")
        return default
    return raw


def _get_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return _truthy(raw)


@dataclass(frozen=True)
class Settings:
    """Immutable configuration value for one ingestion process."""

    database_url: Optional[str] = None
    sqlalchemy_echo: bool = False
    log_level: str = "INFO"
    interval_minutes: float = 30
    max_retries: int = 3
    retry_delay_minutes: float = 5
    scraper_enabled: bool = True
    fetch_timeout_seconds: float = 30.0
    max_concurrent_fetches: int = 10

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "Settings":
        """Build settings from environment variables.

        Args:
            dotenv_path: Optional ``.env`` file loaded before reading. Values
                already present in the environment win.
        """
        load_dotenv(dotenv_path or os.getenv("DAILYTRENDS_DOTENV_PATH", ".env"))

        return cls(
            database_url=os.getenv("DATABASE_URL") or None,
            sqlalchemy_echo=_get_bool_env("SQLALCHEMY_ECHO", False),
            log_level=_get_log_level("LOG_LEVEL", "INFO"),
            interval_minutes=_get_float_env("SCRAPE_INTERVAL_MINUTES", 30),
            max_retries=_get_int_env("SCRAPE_MAX_RETRIES", 3),
            retry_delay_minutes=_get_float_env("SCRAPE_RETRY_DELAY_MINUTES", 5),
            scraper_enabled=_get_bool_env("SCRAPER_ENABLED", True),
            fetch_timeout_seconds=_get_float_env("FETCH_TIMEOUT_SECONDS", 30.0),
            max_concurrent_fetches=_get_int_env("MAX_CONCURRENT_FETCHES", 10),
        )

    def schedule_config(self) -> ScheduleConfig:
        return ScheduleConfig(
            interval_minutes=self.interval_minutes,
            max_retries=self.max_retries,
            retry_delay_minutes=self.retry_delay_minutes,
            enabled=self.scraper_enabled,
        )
