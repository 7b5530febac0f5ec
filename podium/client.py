from __future__ import annotations

import json
import logging
import os
import threading
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

import httpx

from podium.errors import RateLimited, SessionNotFound, ValidationError

logger = logging.getLogger(__name__)

PODIUM_BASE_URL = os.getenv("PODIUM_BASE_URL", "http://127.0.0.1:8111").rstrip("/")
TIMEOUT_S = float(os.getenv("PODIUM_CLIENT_TIMEOUT_S", "10"))


def parse_sse(lines: Iterable[str]) -> Iterator[Dict[str, Any]]:
    """
    Decode `data:` frames from an SSE line iterator. Comment lines
    (keepalives) and non-JSON frames are skipped.
    """
    buf: List[str] = []
    for raw in lines:
        line = raw.rstrip("\r\n")
        if not line:
            if buf:
                data = "\n".join(buf)
                buf = []
                try:
                    msg = json.loads(data)
                except ValueError:
                    logger.debug("skipping non-json sse frame: %r", data[:80])
                    continue
                if isinstance(msg, dict):
                    yield msg
            continue
        if line.startswith(":"):
            continue
        if line.startswith("data:"):
            buf.append(line[5:].lstrip(" "))


def _detail(r: httpx.Response, default: str) -> str:
    try:
        body = r.json()
    except ValueError:
        return r.text.strip() or default
    if isinstance(body, dict) and body.get("detail"):
        return str(body["detail"])
    return default


def _raise_for(r: httpx.Response, session_id: str) -> None:
    if r.status_code == 404:
        raise SessionNotFound(session_id)
    if r.status_code == 400:
        raise ValidationError(_detail(r, "invalid request"))
    if r.status_code == 429:
        raise RateLimited(_detail(r, "rate limited"))
    r.raise_for_status()


class PodiumClient:
    """
    Thin HTTP client for presenters and audience devices in other processes.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_s: float = TIMEOUT_S,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or PODIUM_BASE_URL).rstrip("/")
        self.timeout_s = timeout_s
        self._transport = transport

    def _client(self, timeout: Any = None) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            timeout=self.timeout_s if timeout is None else timeout,
            transport=self._transport,
        )

    def create_session(self) -> Dict[str, Any]:
        with self._client() as client:
            r = client.post("/v1/sessions")
        r.raise_for_status()
        return r.json()

    def get_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        with self._client() as client:
            r = client.get(f"/v1/sessions/{session_id}")
        if r.status_code == 404:
            return None
        r.raise_for_status()
        return r.json()

    def delete_session(self, session_id: str) -> bool:
        with self._client() as client:
            r = client.delete(f"/v1/sessions/{session_id}")
        r.raise_for_status()
        return bool(r.json().get("deleted"))

    def submit_feedback(self, session_id: str, text: str) -> str:
        with self._client() as client:
            r = client.post(f"/v1/sessions/{session_id}/feedback", json={"text": text})
        _raise_for(r, session_id)
        return r.json()["feedbackId"]

    def list_feedback(self, session_id: str, since: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {"since": since} if since else None
        with self._client() as client:
            r = client.get(f"/v1/sessions/{session_id}/feedback", params=params)
        _raise_for(r, session_id)
        return r.json()["feedback"]

    def publish_slide(self, session_id: str, slide: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        with self._client() as client:
            r = client.post(f"/v1/sessions/{session_id}/slide", json={"slide": slide})
        _raise_for(r, session_id)
        return r.json().get("slide")

    def get_slide(self, session_id: str) -> Optional[Dict[str, Any]]:
        with self._client() as client:
            r = client.get(f"/v1/sessions/{session_id}/slide")
        _raise_for(r, session_id)
        return r.json().get("slide")

    def iter_feedback(self, session_id: str, since: Optional[str] = None) -> Iterator[Dict[str, Any]]:
        """
        Yield feedback payloads from the SSE stream until the server closes it.
        """
        params = {"since": since} if since else None
        timeout = httpx.Timeout(self.timeout_s, read=None)
        with self._client(timeout=timeout) as client:
            with client.stream("GET", f"/v1/sessions/{session_id}/stream", params=params) as r:
                if r.status_code == 404:
                    raise SessionNotFound(session_id)
                r.raise_for_status()
                for msg in parse_sse(r.iter_lines()):
                    if msg.get("type") == "feedback" and isinstance(msg.get("payload"), dict):
                        yield msg["payload"]


class FeedbackInbox:
    """
    Presenter-side view of received feedback. The stream is at-least-once
    across reconnects, so items are deduped by id here.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: List[Dict[str, Any]] = []     # newest first
        self._ids: set = set()
        self._read: set = set()
        self.last_timestamp: Optional[str] = None

    def add(self, item: Dict[str, Any]) -> bool:
        fid = item.get("id")
        with self._lock:
            if not fid or fid in self._ids:
                return False
            self._ids.add(fid)
            self._items.insert(0, item)
            ts = item.get("timestamp")
            if ts and (self.last_timestamp is None or _parse_ts(ts) > _parse_ts(self.last_timestamp)):
                self.last_timestamp = ts
            return True

    def items(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._items)

    @property
    def unread_count(self) -> int:
        with self._lock:
            return sum(1 for i in self._items if i["id"] not in self._read)

    def mark_read(self, feedback_id: str) -> None:
        with self._lock:
            if feedback_id in self._ids:
                self._read.add(feedback_id)

    def mark_all_read(self) -> None:
        with self._lock:
            self._read.update(self._ids)

    def dismiss(self, feedback_id: str) -> None:
        with self._lock:
            self._items = [i for i in self._items if i["id"] != feedback_id]
            self._read.discard(feedback_id)
            # keep the id so a replay after reconnect is still dropped


def _parse_ts(ts: str) -> datetime:
    return datetime.fromisoformat(ts.replace("Z", "+00:00"))


class SlidePoller:
    """
    Remote read path for the current slide: polls GET /slide on a fixed
    interval and calls `on_change` only when the slide differs from the last
    one seen. Fast successive publishes may be skipped (latest-only).
    """

    def __init__(
        self,
        client: PodiumClient,
        session_id: str,
        on_change: Callable[[Optional[Dict[str, Any]]], None],
        interval_s: float = 2.0,
    ) -> None:
        self.client = client
        self.session_id = session_id
        self.on_change = on_change
        self.interval_s = interval_s

        self._last_key: Optional[tuple] = None
        self._seen_any = False
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self.session_gone = False
        self.last_error: Optional[str] = None

    def poll_once(self) -> bool:
        """
        Returns True when on_change fired.
        """
        slide = self.client.get_slide(self.session_id)
        key = (slide.get("id"), slide.get("publishedAt")) if slide else None
        if self._seen_any and key == self._last_key:
            return False
        self._seen_any = True
        self._last_key = key
        self.on_change(slide)
        return True

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name=f"slide-poller-{self.session_id}", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 2.0) -> None:
        self._stop.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)

    def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                self.poll_once()
                self.last_error = None
            except SessionNotFound:
                logger.info("session %s is gone, stopping slide poller", self.session_id)
                self.session_gone = True
                return
            except Exception as e:
                # transient network trouble: keep polling
                self.last_error = str(e)
                logger.warning("slide poll failed for session %s: %s", self.session_id, e)
            self._stop.wait(self.interval_s)
