"""Datetime utilities for consistent timestamp handling."""

from datetime import datetime, timezone
from typing import Optional, Union


def utc_now() -> datetime:
    """Get current UTC datetime.

    Returns:
        Timezone-aware datetime in UTC
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes so comparisons never mix naive and aware values."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def parse_datetime_utc(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse datetime string and ensure it's timezone-aware (UTC).

    Args:
        value: ISO format datetime string, datetime, or None

    Returns:
        Timezone-aware datetime in UTC, or None if input is empty
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    return ensure_utc(datetime.fromisoformat(value))


def to_iso(dt: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime as an ISO 8601 string in UTC (None passes through)."""
    if dt is None:
        return None
    return ensure_utc(dt).isoformat()


def age_in_days(then: Optional[datetime], now: Optional[datetime] = None) -> float:
    """Fractional days elapsed since ``then`` (0.0 when unknown or in the future)."""
    if then is None:
        return 0.0
    now = now or utc_now()
    return max(0.0, (ensure_utc(now) - ensure_utc(then)).total_seconds() / 86400.0)
