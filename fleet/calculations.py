"""Helper functions for maintenance due calculations."""

from datetime import date, datetime, timedelta, timezone
from typing import Optional


def calc_due_date(last_date: Optional[date], interval_days: int) -> Optional[date]:
    """Calculate next due date: last service + interval days. None without history."""
    if last_date is None:
        return None
    return last_date + timedelta(days=interval_days)


def days_since(last_date: date, today: date) -> int:
    """Whole days elapsed from last_date to today (negative if last_date is later)."""
    return (today - last_date).days


def is_interval_elapsed(
    last_date: Optional[date], interval_days: int, today: date
) -> bool:
    """
    Check whether a time interval has run out.

    - No last date: True (never serviced is always due)
    - Otherwise: days elapsed >= interval (inclusive)
    """
    if last_date is None:
        return True
    return days_since(last_date, today) >= interval_days


def usage_limit(max_hours: Optional[float], threshold: float) -> Optional[float]:
    """Usage hours at which a component crosses threshold. None if max is unknown."""
    if max_hours is None:
        return None
    return max_hours * threshold


def is_usage_over(
    usage_hours: float, max_hours: Optional[float], threshold: float
) -> bool:
    """Inclusive threshold check: usage >= max * threshold. Unknown max is never over."""
    limit = usage_limit(max_hours, threshold)
    if limit is None:
        return False
    return usage_hours >= limit


def as_naive_utc(value: datetime) -> datetime:
    """
    Normalize a timestamp to naive UTC.

    Offset-aware values are converted to UTC and lose their tzinfo; naive
    values are taken to be UTC already and are returned unchanged.
    """
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def utc_now() -> datetime:
    """Current time as naive UTC, the form every stored timestamp takes."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
