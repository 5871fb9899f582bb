# app/services/time_utils.py
from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to aware UTC. Naive values are taken to be UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_provider_datetime(value: Any) -> Optional[datetime]:
    """
    Parse a Zoom timestamp into an aware UTC datetime.

    Zoom sends ISO-8601 strings such as ``2025-01-10T10:30:00Z``; values
    without an offset are UTC. Returns None for empty or unparseable input.
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    if not isinstance(value, str) or not value.strip():
        return None

    raw = value.strip()
    if raw.endswith("Z") or raw.endswith("z"):
        raw = raw[:-1] + "+00:00"

    try:
        dt = datetime.fromisoformat(raw)
    except ValueError:
        return None

    return ensure_utc(dt)


def minutes_between(later: datetime, earlier: datetime) -> int:
    """
    Signed whole minutes from `earlier` to `later`; halves round up
    (-2.5 -> -2, 2.5 -> 3).
    """
    seconds = (ensure_utc(later) - ensure_utc(earlier)).total_seconds()
    return math.floor(seconds / 60.0 + 0.5)
