from __future__ import annotations

from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Callable, Optional

_TICK = timedelta(microseconds=1)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MonotonicClock:
    """Hands out strictly increasing UTC timestamps."""

    def __init__(self, source: Callable[[], datetime] = utc_now) -> None:
        self._source = source
        self._last: Optional[datetime] = None
        self._lock = Lock()

    def now(self) -> datetime:
        with self._lock:
            current = self._source()
            if self._last is not None and current <= self._last:
                current = self._last + _TICK
            self._last = current
            return current


def ensure_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC and normalize aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
