"""Utility functions for time handling.

All timestamps are UTC and timezone-aware. Alerts persist them as ISO-8601
strings at second precision (e.g. ``2026-01-05T10:15:00+00:00``) so string
comparison and ``substr(created_at, 1, 10)`` day bucketing stay valid in SQLite.
"""

from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return current UTC time as an aware datetime."""
    return datetime.now(timezone.utc)


def iso_now(*, timespec: str | None = None) -> str:
    """Return current UTC time as an ISO8601 string (timezone-aware)."""
    return to_iso(utc_now(), timespec=timespec)


def to_iso(dt: datetime, *, timespec: str | None = "seconds") -> str:
    """Normalise *dt* to UTC and render it as ISO-8601."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)
    if timespec:
        return dt.isoformat(timespec=timespec)
    return dt.isoformat()

