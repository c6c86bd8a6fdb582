"""Timezone utilities for ArguFight."""

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from argufight.config import settings


def get_now() -> datetime:
    """
    Get current datetime in the configured timezone.

    Returns:
        Timezone-aware datetime in the configured timezone
    """
    return datetime.now(get_timezone())


def get_timezone() -> ZoneInfo:
    """
    Get the configured timezone.

    Returns:
        ZoneInfo object for the configured timezone
    """
    try:
        return ZoneInfo(settings.timezone)
    except Exception:
        # Fallback to UTC if timezone is invalid
        return ZoneInfo("UTC")


def range_start(range_name: str | None, now: datetime | None = None) -> datetime | None:
    """Resolve a 'today' / 'week' / 'month' window to its start time ('all' -> None)."""
    now = now or get_now()
    if range_name == "today":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if range_name == "week":
        return now - timedelta(days=7)
    if range_name == "month":
        return now - timedelta(days=30)
    return None
