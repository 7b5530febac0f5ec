from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from podium.errors import SessionNotFound, ValidationError
from podium.feedback.types import FeedbackItem
from podium.sessions.registry import SessionRegistry
from podium.types.core import as_utc, new_id

logger = logging.getLogger(__name__)

_TICK = timedelta(microseconds=1)


class _SessionLog:
    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.items: List[FeedbackItem] = []


class FeedbackLog:
    """
    Per-session append-only feedback.

    Timestamps are strictly increasing within a session (a clock that has not
    moved since the previous append is nudged forward by one microsecond), so
    `query(since=ts)` never drops an item that shares its predecessor's instant.
    """

    def __init__(self, registry: SessionRegistry, max_chars: int = 2000) -> None:
        self.registry = registry
        self.max_chars = max_chars
        self._lock = threading.Lock()
        self._logs: Dict[str, _SessionLog] = {}
        registry.add_eviction_listener(self.drop)

    def _log_for(self, session_id: str, create: bool = False) -> Optional[_SessionLog]:
        with self._lock:
            log = self._logs.get(session_id)
            if log is None and create:
                log = _SessionLog()
                self._logs[session_id] = log
            return log

    def _clean(self, text: Any) -> str:
        if not isinstance(text, str):
            raise ValidationError("Feedback text is required")
        cleaned = text.strip()
        if not cleaned:
            raise ValidationError("Feedback text is required")
        if self.max_chars and len(cleaned) > self.max_chars:
            raise ValidationError(f"Feedback text must be at most {self.max_chars} characters")
        return cleaned

    def append(self, session_id: str, text: Any) -> FeedbackItem:
        self.registry.require(session_id)
        cleaned = self._clean(text)

        log = self._log_for(session_id, create=True)
        with log.lock:
            ts = self.registry.clock.now()
            if log.items and ts <= log.items[-1].timestamp:
                ts = log.items[-1].timestamp + _TICK
            item = FeedbackItem(id=new_id("fb"), session_id=session_id, text=cleaned, timestamp=ts)
            log.items.append(item)

        # the session may have been evicted between require() and the append
        if self.registry.get(session_id) is None:
            self.drop(session_id)
            raise SessionNotFound(session_id)

        logger.info("feedback %s added to session %s: %r", item.id, session_id, cleaned[:50])
        return item

    def query(self, session_id: str, since: Optional[datetime] = None) -> List[FeedbackItem]:
        if self.registry.get(session_id) is None:
            return []
        log = self._log_for(session_id)
        if log is None:
            return []
        with log.lock:
            items = list(log.items)
        if since is None:
            return items
        since = as_utc(since)
        return [i for i in items if i.timestamp > since]

    def last_timestamp(self, session_id: str) -> Optional[datetime]:
        log = self._log_for(session_id)
        if log is None:
            return None
        with log.lock:
            return log.items[-1].timestamp if log.items else None

    def count(self, session_id: Optional[str] = None) -> int:
        with self._lock:
            logs = [self._logs.get(session_id)] if session_id else list(self._logs.values())
        total = 0
        for log in logs:
            if log is None:
                continue
            with log.lock:
                total += len(log.items)
        return total

    def drop(self, session_id: str) -> None:
        with self._lock:
            self._logs.pop(session_id, None)
