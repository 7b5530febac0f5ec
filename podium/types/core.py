from __future__ import annotations

import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


def to_iso(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).isoformat(timespec="microseconds")


def as_utc(ts: datetime) -> datetime:
    """
    Naive datetimes coming from clients are read as UTC.
    """
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


class Clock:
    """
    Single time source for TTL arithmetic and record timestamps.
    """

    def now(self) -> datetime:
        raise NotImplementedError


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class ManualClock(Clock):
    """
    Test clock. Only moves when told to.
    """

    def __init__(self, start: Optional[datetime] = None) -> None:
        self._lock = threading.Lock()
        self._now = as_utc(start) if start else datetime(2025, 1, 1, tzinfo=timezone.utc)

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def set(self, ts: datetime) -> None:
        with self._lock:
            self._now = as_utc(ts)

    def advance(self, seconds: float = 0.0, **kwargs: float) -> datetime:
        with self._lock:
            self._now = self._now + timedelta(seconds=seconds, **kwargs)
            return self._now
