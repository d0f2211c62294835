"""Time sources used for lifecycle stamps and interval bucketing."""

from datetime import datetime, timedelta, timezone
from typing import Optional


def to_utc(dt: datetime) -> datetime:
    """Interpret naive datetimes (as read back from SQLite) as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class Clock:
    def now(self) -> datetime:
        raise NotImplementedError


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class ManualClock(Clock):
    """Settable clock for tests and replayed sessions."""

    def __init__(self, start: Optional[datetime] = None):
        self._now = to_utc(start) if start else datetime.now(timezone.utc)

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime) -> None:
        self._now = to_utc(value)

    def advance(self, *, minutes: float = 0, seconds: float = 0) -> datetime:
        self._now = self._now + timedelta(minutes=minutes, seconds=seconds)
        return self._now


system_clock = SystemClock()
