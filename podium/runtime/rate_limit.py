from __future__ import annotations

import threading
from collections import deque
from datetime import timedelta
from typing import Deque, Dict, Mapping, Optional

from podium.types.core import Clock, SystemClock

_FALLBACK_HEADERS = ("x-real-ip", "cf-connecting-ip", "x-client-ip")


def client_id(headers: Mapping[str, str], peer: Optional[str] = None) -> str:
    """
    Best-effort caller identity for rate limiting. Not an auth signal.
    """
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
        if ip:
            return ip
    for name in _FALLBACK_HEADERS:
        v = headers.get(name)
        if v and v.strip():
            return v.strip()
    return peer or "unknown"


class SlidingWindowLimiter:
    """
    Counts hits per key over a trailing window. `limit <= 0` disables it.
    """

    def __init__(self, limit: int, window_s: float, clock: Optional[Clock] = None) -> None:
        self.limit = limit
        self.window = timedelta(seconds=window_s)
        self.clock = clock or SystemClock()
        self._lock = threading.Lock()
        self._hits: Dict[str, Deque] = {}

    def hit(self, key: str) -> bool:
        """
        Record a hit; True when the key is now over the limit.
        """
        if self.limit <= 0:
            return False
        now = self.clock.now()
        cutoff = now - self.window
        with self._lock:
            q = self._hits.setdefault(key, deque())
            while q and q[0] <= cutoff:
                q.popleft()
            q.append(now)
            return len(q) > self.limit

    def forget(self, prefix: str) -> None:
        with self._lock:
            for key in [k for k in self._hits if k.startswith(prefix)]:
                del self._hits[key]
