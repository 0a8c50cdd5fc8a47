"""Time source used by every entitlement comparison."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable
from zoneinfo import ZoneInfo

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(dt: datetime) -> datetime:
    """Treat naive timestamps as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def local_date(dt: datetime, tz_name: str = "UTC"):
    return ensure_aware(dt).astimezone(ZoneInfo(tz_name)).date()


def same_day(a: datetime | None, b: datetime | None, tz_name: str = "UTC") -> bool:
    """Return True when both timestamps fall on the same calendar day in ``tz_name``."""
    if a is None or b is None:
        return False
    return local_date(a, tz_name) == local_date(b, tz_name)


__all__ = ["Clock", "utc_now", "ensure_aware", "local_date", "same_day"]
