from __future__ import annotations

import threading
from typing import Dict

from podium.errors import StreamLimitReached


class StreamTracker:
    """
    Counts open stream connections and their running periodic tasks.
    Both counters must come back to their previous values after teardown.
    """

    def __init__(self, max_connections: int = 0) -> None:
        self.max_connections = max_connections
        self._lock = threading.Lock()
        self._connections = 0
        self._tasks = 0
        self._opened_total = 0
        self._closed_by_reason: Dict[str, int] = {}

    def acquire(self) -> None:
        with self._lock:
            if self.max_connections and self._connections >= self.max_connections:
                raise StreamLimitReached(f"stream limit reached ({self.max_connections})")
            self._connections += 1
            self._opened_total += 1

    def release(self, reason: str) -> None:
        with self._lock:
            self._connections = max(0, self._connections - 1)
            self._closed_by_reason[reason] = self._closed_by_reason.get(reason, 0) + 1

    def task_started(self) -> None:
        with self._lock:
            self._tasks += 1

    def task_finished(self) -> None:
        with self._lock:
            self._tasks = max(0, self._tasks - 1)

    @property
    def connections(self) -> int:
        with self._lock:
            return self._connections

    @property
    def tasks(self) -> int:
        with self._lock:
            return self._tasks

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "open_connections": self._connections,
                "active_tasks": self._tasks,
                "opened_total": self._opened_total,
                "closed_by_reason": dict(self._closed_by_reason),
                "max_connections": self.max_connections or None,
            }
