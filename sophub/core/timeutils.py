# sophub/core/timeutils.py
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    # tz-aware UTC, stored as naive UTC (SQLite-friendly)
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: Any) -> Optional[datetime]:
    """Coerce datetimes, dates and ISO strings into naive UTC datetimes."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        return as_naive_utc(datetime.fromisoformat(raw))
    raise TypeError(f"Unsupported timestamp value: {value!r}")


def iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
