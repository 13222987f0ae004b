from __future__ import annotations

from datetime import UTC, date, datetime, time, timedelta


def utcnow() -> datetime:
    """Server-side 'now', timezone-aware UTC."""
    return datetime.now(UTC)


def as_utc(dt: datetime) -> datetime:
    """Normalize a datetime to aware UTC. Naive values are taken as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def parse_iso_date(value: str) -> date:
    """Parse ``YYYY-MM-DD``; a full ISO timestamp is accepted and truncated."""
    s = value.strip()
    if len(s) > 10:
        s = s[:10]
    return date.fromisoformat(s)


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=UTC)


def start_of_next_day(day: date) -> datetime:
    """Exclusive upper bound that makes ``day`` itself inclusive."""
    return start_of_day(day + timedelta(days=1))
