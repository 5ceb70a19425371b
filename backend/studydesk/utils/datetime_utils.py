"""Datetime conversion utilities."""

from datetime import UTC, date, datetime


def datetime_to_iso(value: datetime | None) -> str | None:
    """Convert a datetime to an ISO-8601 string, or None."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat()


def parse_day(value: str | None) -> date | None:
    """Parse a ``YYYY-MM-DD`` query value; anything else yields None."""
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def same_day(value: datetime | None, day: date) -> bool:
    if value is None:
        return False
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
    return value.date() == day
