"""Naive-UTC date helpers used for due dates and dashboard windows."""

from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def start_of_day(value: Optional[datetime] = None) -> datetime:
    value = value or utcnow()
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def day_window(days_ahead: int = 0, now: Optional[datetime] = None):
    """Return the [start, end) bounds of the calendar day ``days_ahead`` from today."""
    start = start_of_day(now) + timedelta(days=days_ahead)
    return start, start + timedelta(days=1)


def format_long_date(value: datetime) -> str:
    # e.g. "Mon Oct 19 2026"
    return value.strftime("%a %b %d %Y")


def format_short_date(value: datetime) -> str:
    return value.strftime("%d/%m/%Y")
