from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Optional

from podium.sessions.registry import SessionRegistry
from podium.types.core import to_iso

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """
    Periodic backstop for session expiry.

    SessionRegistry already hides expired sessions on read; this only bounds
    memory for sessions nobody reads again. Eviction cascades through the
    registry's eviction listeners (feedback log, slide cell).
    """

    def __init__(self, registry: SessionRegistry, interval_s: float = 30 * 60, enabled: bool = True) -> None:
        self.registry = registry
        self.interval_s = interval_s
        self.enabled = enabled

        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self._last_result: Optional[Dict[str, Any]] = None

    def start(self) -> None:
        if not self.enabled:
            return
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="session-sweeper", daemon=True)
        self._thread.start()
        logger.info("session sweeper started, interval %.0fs", self.interval_s)

    def stop(self, timeout: float = 2.0) -> None:
        self._stop.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        self._thread = None

    def status(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "interval_s": self.interval_s,
            "running": bool(self._thread and self._thread.is_alive()),
            "last_result": self._last_result,
        }

    def sweep_once(self) -> Dict[str, Any]:
        now = self.registry.clock.now()
        evicted = 0
        failed = 0
        for sid in self.registry.expired_ids(now):
            try:
                if self.registry.evict(sid, now):
                    evicted += 1
                    logger.info("cleaned up expired session %s", sid)
            except Exception:
                failed += 1
                logger.exception("failed to evict session %s", sid)

        result = {
            "ok": failed == 0,
            "ts": to_iso(now),
            "evicted": evicted,
            "failed": failed,
            "remaining": self.registry.count(),
        }
        self._last_result = result
        return result

    def _loop(self) -> None:
        while not self._stop.wait(self.interval_s):
            try:
                res = self.sweep_once()
                if res["evicted"] or res["failed"]:
                    logger.info("sweep: evicted=%d failed=%d", res["evicted"], res["failed"])
            except Exception as e:
                logger.exception("sweep failed")
                self._last_result = {"ok": False, "error": str(e)}
