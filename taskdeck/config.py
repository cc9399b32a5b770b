"""
Application configuration loaded from environment variables.
"""
import os
from datetime import datetime

import pytz
from dotenv import load_dotenv

load_dotenv()


def _parse_timezone(val: str | None, default: str):
    """Resolve a timezone name, falling back to the default when unknown."""
    if not val:
        return pytz.timezone(default)
    try:
        return pytz.timezone(val)
    except pytz.UnknownTimeZoneError:
        return pytz.timezone(default)


def _parse_log_level(val: str | None, default: str) -> str:
    """Normalize a logging level name."""
    if not val:
        return default
    level = val.strip().upper()
    if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        return default
    return level


ENVIRONMENT = os.environ.get("ENVIRONMENT", "development")
DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///./taskdeck.db")
FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:5173")

APP_TIMEZONE = _parse_timezone(os.getenv("APP_TIMEZONE"), "UTC")
LOG_LEVEL = _parse_log_level(os.getenv("LOG_LEVEL"), "INFO")


def now() -> datetime:
    """Current time in the configured application timezone."""
    return datetime.now(APP_TIMEZONE)
