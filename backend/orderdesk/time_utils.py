# Overview: UTC helpers shared by models (serialisation) and services (timestamps, timeouts).

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a stored timestamp to naive UTC.

    SQLite hands back naive values, PostgreSQL aware ones; comparisons
    against utcnow() need both in the same form.
    """
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def older_than(dt: Optional[datetime], age: timedelta, now: Optional[datetime] = None) -> bool:
    """True when dt lies more than `age` before now. A missing dt counts as old."""
    if dt is None:
        return True
    return (now or utcnow()) - as_naive_utc(dt) > age


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """ISO-8601 with trailing 'Z', seconds precision. Naive values are UTC."""
    if dt is None:
        return None
    dt = as_naive_utc(dt)
    return dt.replace(microsecond=0).isoformat() + "Z"
