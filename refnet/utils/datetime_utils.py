"""
Datetime utilities.

Provides timezone-aware datetime functions and calendar bucketing helpers.
"""

from datetime import UTC, date, datetime


def utc_now() -> datetime:
    """
    Get current UTC datetime with timezone info.

    Returns:
        Current datetime in UTC with timezone awareness
    """
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to aware UTC.

    SQLite returns naive datetimes for timezone-aware columns; those are
    stored in UTC and are tagged as such.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def month_start(value: datetime) -> datetime:
    """First instant of the UTC calendar month containing value."""
    value = as_utc(value)
    return value.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def day_start(value: date) -> datetime:
    """Midnight UTC of a calendar day."""
    return datetime(value.year, value.month, value.day, tzinfo=UTC)


def period_key(value: datetime) -> int:
    """Rollup period of a datetime as yyyymm."""
    value = as_utc(value)
    return value.year * 100 + value.month


def period_label(period: int) -> str:
    """Format a yyyymm period as yyyy-mm."""
    return f"{period // 100:04d}-{period % 100:02d}"


def period_start(period: int) -> datetime:
    """First instant of a yyyymm period."""
    return datetime(period // 100, period % 100, 1, tzinfo=UTC)
