from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from podium.errors import SessionExpired, SessionNotFound
from podium.sessions.types import Session
from podium.types.core import Clock, SystemClock, new_id, to_iso

logger = logging.getLogger(__name__)

DEFAULT_TTL_S = 4 * 60 * 60

EvictionListener = Callable[[str], None]


class SessionRegistry:
    """
    Owns session identity and expiry.

    - get() enforces expiry lazily: an expired session is evicted on read,
      so readers never see it even if the sweeper has not run yet.
    - Every removal path (delete, lazy expiry, sweep) notifies eviction
      listeners so per-session state elsewhere is dropped with it.
    """

    def __init__(self, clock: Optional[Clock] = None, ttl_s: float = DEFAULT_TTL_S) -> None:
        self.clock = clock or SystemClock()
        self.ttl = timedelta(seconds=ttl_s)
        self._lock = threading.RLock()
        self._by_id: Dict[str, Session] = {}
        self._listeners: List[EvictionListener] = []

    def add_eviction_listener(self, fn: EvictionListener) -> None:
        with self._lock:
            self._listeners.append(fn)

    def create(self) -> Session:
        now = self.clock.now()
        with self._lock:
            sid = new_id("ses")
            while sid in self._by_id:
                sid = new_id("ses")
            session = Session(id=sid, created_at=now, expires_at=now + self.ttl)
            self._by_id[sid] = session
        logger.info("created session %s, expires at %s", sid, to_iso(session.expires_at))
        return session

    def get(self, session_id: str) -> Optional[Session]:
        try:
            return self.require(session_id)
        except SessionNotFound:
            return None

    def require(self, session_id: str) -> Session:
        now = self.clock.now()
        with self._lock:
            session = self._by_id.get(session_id)
            if session is None:
                raise SessionNotFound(session_id)
            if session.is_live(now):
                return session
            del self._by_id[session_id]
        logger.info("session %s expired on access", session_id)
        self._notify(session_id)
        raise SessionExpired(session_id)

    def delete(self, session_id: str) -> bool:
        with self._lock:
            removed = self._by_id.pop(session_id, None) is not None
        # cascade even when the session was already gone; dependents may still hold state
        self._notify(session_id)
        if removed:
            logger.info("deleted session %s", session_id)
        return removed

    def evict(self, session_id: str, now: Optional[datetime] = None) -> bool:
        """
        Remove the session only if it is expired at `now`.
        """
        now = now or self.clock.now()
        with self._lock:
            session = self._by_id.get(session_id)
            if session is None or session.is_live(now):
                return False
            del self._by_id[session_id]
        self._notify(session_id)
        return True

    def expired_ids(self, now: Optional[datetime] = None) -> List[str]:
        now = now or self.clock.now()
        with self._lock:
            return [sid for sid, s in self._by_id.items() if not s.is_live(now)]

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._by_id.keys())

    def count(self) -> int:
        with self._lock:
            return len(self._by_id)

    def _notify(self, session_id: str) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for fn in listeners:
            try:
                fn(session_id)
            except Exception:
                logger.exception("eviction listener failed for session %s", session_id)
