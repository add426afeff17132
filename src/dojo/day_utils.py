"""Calendar-day boundary utilities.

Every daily limit keys on the UTC calendar day. ``utc_today`` is the single
clock read so tests can patch one place.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_today() -> date:
    """Get today's date in UTC."""
    return utc_now().date()


def get_month_start(now: datetime | None = None) -> datetime:
    """First instant of the current UTC calendar month."""
    if now is None:
        now = utc_now()
    return datetime(now.year, now.month, 1, tzinfo=timezone.utc)


def count_streak(days: set[date], today: date) -> int:
    """Consecutive days with activity ending today or yesterday.

    A streak survives until the end of the day after the last activity,
    so a student who checked in yesterday but not yet today keeps it.
    Capped at 365 days.
    """
    yesterday = today - timedelta(days=1)
    if today in days:
        cursor = today
    elif yesterday in days:
        cursor = yesterday
    else:
        return 0

    streak = 0
    while cursor in days and streak < 365:
        streak += 1
        cursor -= timedelta(days=1)
    return streak
