"""Datetime parsing helpers for API payloads and query strings."""

from __future__ import annotations

from datetime import date, datetime, time, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """
    Normalize to an aware UTC datetime.

    Naive values are taken as UTC (that is how they are stored).
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_api_datetime(raw_value: str | datetime | date | None) -> datetime | None:
    """
    Parse an ISO 8601 date or datetime from a request.

    Accepts a trailing Z. Date-only values mean midnight UTC. Values without
    an offset are taken as UTC.

    Raises:
        ValueError: unparseable value
    """
    if raw_value is None:
        return None
    if isinstance(raw_value, datetime):
        return ensure_utc(raw_value)
    if isinstance(raw_value, date):
        return datetime.combine(raw_value, time.min, tzinfo=timezone.utc)

    value = raw_value.strip()
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValueError(f"Invalid datetime '{raw_value}'. Use ISO 8601 (e.g., 2024-01-01T09:00:00Z).")
    return ensure_utc(dt)
