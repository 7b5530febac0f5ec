from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, List, Optional

from podium.errors import SessionNotFound
from podium.sessions.registry import SessionRegistry
from podium.slides.types import SlideSnapshot

logger = logging.getLogger(__name__)

SlideSubscriber = Callable[[Optional[SlideSnapshot]], None]


class SlideChannel:
    """
    One "current slide" cell per session. Last write wins, no history.

    Two read paths share the cell:
      - subscribe(): in-process callbacks fired on every publish
      - latest():    what the HTTP route serves to polling devices
    """

    def __init__(self, registry: SessionRegistry) -> None:
        self.registry = registry
        self._lock = threading.RLock()
        self._current: Dict[str, SlideSnapshot] = {}
        self._subscribers: Dict[str, List[SlideSubscriber]] = {}
        registry.add_eviction_listener(self.drop)

    def publish(self, session_id: str, snapshot: Optional[SlideSnapshot]) -> Optional[SlideSnapshot]:
        self.registry.require(session_id)
        with self._lock:
            if snapshot is None:
                self._current.pop(session_id, None)
            else:
                self._current[session_id] = snapshot
            subscribers = list(self._subscribers.get(session_id, ()))

        if self.registry.get(session_id) is None:
            self.drop(session_id)
            raise SessionNotFound(session_id)

        logger.info(
            "slide for session %s %s",
            session_id,
            f"set to {snapshot.id}" if snapshot is not None else "cleared",
        )
        for fn in subscribers:
            try:
                fn(snapshot)
            except Exception:
                logger.exception("slide subscriber failed for session %s", session_id)
        return snapshot

    def latest(self, session_id: str) -> Optional[SlideSnapshot]:
        if self.registry.get(session_id) is None:
            return None
        with self._lock:
            return self._current.get(session_id)

    def subscribe(self, session_id: str, fn: SlideSubscriber) -> Callable[[], None]:
        self.registry.require(session_id)
        with self._lock:
            self._subscribers.setdefault(session_id, []).append(fn)

        def unsubscribe() -> None:
            with self._lock:
                subs = self._subscribers.get(session_id)
                if subs and fn in subs:
                    subs.remove(fn)
                if subs == []:
                    self._subscribers.pop(session_id, None)

        return unsubscribe

    def subscriber_count(self, session_id: str) -> int:
        with self._lock:
            return len(self._subscribers.get(session_id, ()))

    def drop(self, session_id: str) -> None:
        with self._lock:
            self._current.pop(session_id, None)
            self._subscribers.pop(session_id, None)
