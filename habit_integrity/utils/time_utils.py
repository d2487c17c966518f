"""
Date and time helpers shared by the repositories and the recompute workflow.

All timestamps are timezone-aware UTC.  Calendar days (log dates) are plain
``date`` objects with no timezone.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Return the current UTC datetime with timezone info.

    Prefer this over ``datetime.utcnow()`` (which returns naive datetimes).
    """
    return datetime.now(tz=timezone.utc)


def ensure_utc(ts: datetime) -> datetime:
    """Attach UTC to a naive datetime; convert an aware one to UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def parse_utc(value: str) -> datetime:
    """Parse an ISO-8601 string (``Z`` suffix allowed) into an aware UTC datetime.

    Raises:
        ValueError: If the string is not ISO-8601.
    """
    return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))


def format_utc(ts: datetime) -> str:
    """Format a datetime as ``YYYY-MM-DDTHH:MM:SSZ``."""
    return ensure_utc(ts).strftime("%Y-%m-%dT%H:%M:%SZ")


def window_start(as_of: datetime, window_days: int) -> date:
    """First calendar day included in a trailing ``window_days`` window.

    Args:
        as_of: Reference instant (usually "now").
        window_days: Window length in days.

    Returns:
        ``as_of.date() - window_days``; logs on or after this date are in
        the window.
    """
    return ensure_utc(as_of).date() - timedelta(days=window_days)


def age_hours(since: Optional[datetime], now: Optional[datetime] = None) -> Optional[float]:
    """Hours elapsed between ``since`` and ``now`` (``None`` if ``since`` is None)."""
    if since is None:
        return None
    now = ensure_utc(now) if now is not None else utcnow()
    return (now - ensure_utc(since)).total_seconds() / 3600.0


def is_weekend(day: date) -> bool:
    """True for Saturday and Sunday."""
    return day.weekday() >= 5
