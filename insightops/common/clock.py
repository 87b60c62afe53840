"""Time helpers shared by the retrieval and decay pipelines."""

from datetime import datetime, timezone
from typing import Callable

# Injectable "now" source: tests pass a fake, production uses utc_now
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def days_between(earlier: datetime, later: datetime) -> int:
    """Whole days elapsed from ``earlier`` to ``later`` (floored)."""
    delta = ensure_utc(later) - ensure_utc(earlier)
    return int(delta.total_seconds() // 86400)
