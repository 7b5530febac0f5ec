from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, List, Optional

from podium.errors import SessionNotFound, TransportError
from podium.feedback.log import FeedbackLog
from podium.sessions.registry import SessionRegistry
from podium.stream.events import KEEPALIVE, feedback_event
from podium.stream.tracker import StreamTracker
from podium.types.core import as_utc

logger = logging.getLogger(__name__)

Sink = Callable[[str], Awaitable[None]]

_END = object()


class StreamState(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"
    REJECTED = "rejected"


class FeedbackStream:
    """
    One presenter connection receiving feedback deltas as SSE frames.

    CONNECTING -> OPEN -> CLOSED, or CONNECTING -> REJECTED when the session
    is unknown at connect time.

    While OPEN, two tasks run on the event loop:
      - keepalive: emits an SSE comment every `keepalive_s`
      - poll:      every `poll_s`, re-checks the session and emits every item
                   newer than the watermark, advancing it item by item

    Both tasks wait on the same `_closed` event, and close() sets it and
    cancels them, so nothing fires for this connection after close().
    close() is idempotent; disconnect, session expiry and transport errors
    all end up there.

    Without an explicit `sink`, frames go onto an in-memory queue drained by
    events(), so `delivered` and the watermark count frames handed to the
    response, not bytes written to the socket. Write failures surface in
    events(): an exception thrown into the iterator closes with
    "transport_error", cancellation or early exit with "client_disconnected".
    """

    def __init__(
        self,
        session_id: str,
        *,
        registry: SessionRegistry,
        log: FeedbackLog,
        tracker: StreamTracker,
        keepalive_s: float = 15.0,
        poll_s: float = 2.0,
        since: Optional[datetime] = None,
        sink: Optional[Sink] = None,
    ) -> None:
        self.session_id = session_id
        self.registry = registry
        self.log = log
        self.tracker = tracker
        self.keepalive_s = keepalive_s
        self.poll_s = poll_s
        self.watermark: Optional[datetime] = as_utc(since) if since is not None else None

        self.state = StreamState.CONNECTING
        self.close_reason: Optional[str] = None
        self.delivered = 0
        self.keepalives = 0

        self._closed = asyncio.Event()
        self._queue: "asyncio.Queue[object]" = asyncio.Queue()
        self._sink: Sink = sink or self._enqueue
        self._tasks: List[asyncio.Task] = []

    def open(self) -> None:
        """
        Validate the session and start both periodic tasks.
        Must be called from a running event loop.
        """
        if self.state is not StreamState.CONNECTING:
            raise RuntimeError(f"stream already {self.state.value}")

        try:
            self.registry.require(self.session_id)
            self.tracker.acquire()
        except Exception:
            self.state = StreamState.REJECTED
            logger.info("rejected stream for session %s", self.session_id)
            raise

        if self.watermark is None:
            # only items appended after connect are pushed
            self.watermark = self.log.last_timestamp(self.session_id)

        self.state = StreamState.OPEN
        loop = asyncio.get_running_loop()
        for name, tick, interval in (
            ("keepalive", self._keepalive_tick, self.keepalive_s),
            ("poll", self._poll_tick, self.poll_s),
        ):
            task = loop.create_task(self._every(interval, tick), name=f"stream-{name}-{self.session_id}")
            self.tracker.task_started()
            task.add_done_callback(lambda _t: self.tracker.task_finished())
            self._tasks.append(task)

        logger.info("stream opened for session %s", self.session_id)

    def close(self, reason: str = "closed") -> None:
        if self.state in (StreamState.CLOSED, StreamState.REJECTED):
            return
        was_open = self.state is StreamState.OPEN
        self.state = StreamState.CLOSED
        self.close_reason = reason
        self._closed.set()
        if not was_open:
            return

        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        for task in self._tasks:
            if task is not current and not task.done():
                task.cancel()

        self._queue.put_nowait(_END)
        self.tracker.release(reason)
        logger.info("stream closed for session %s (%s), delivered=%d", self.session_id, reason, self.delivered)

    async def wait_closed(self) -> None:
        await self._closed.wait()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    @property
    def task_count(self) -> int:
        return sum(1 for t in self._tasks if not t.done())

    async def events(self) -> AsyncIterator[str]:
        """
        Frames for the response body, ending once the stream is closed.
        Leaving the iterator early (client gone) closes the stream.
        """
        reason = "client_disconnected"
        try:
            while True:
                frame = await self._queue.get()
                if frame is _END:
                    return
                yield frame  # type: ignore[misc]
        except Exception as e:
            reason = "transport_error"
            logger.warning("send failed for session %s: %s", self.session_id, e)
            raise
        finally:
            self.close(reason)

    async def _enqueue(self, frame: str) -> None:
        self._queue.put_nowait(frame)

    async def _emit(self, frame: str) -> None:
        if self._closed.is_set():
            raise TransportError("stream is closed")
        try:
            await self._sink(frame)
        except TransportError:
            raise
        except Exception as e:
            raise TransportError(str(e)) from e

    async def _every(self, interval: float, tick: Callable[[], Awaitable[None]]) -> None:
        while not self._closed.is_set():
            try:
                await asyncio.wait_for(self._closed.wait(), timeout=interval)
                return
            except asyncio.TimeoutError:
                pass
            if self._closed.is_set():
                return
            await tick()

    async def _keepalive_tick(self) -> None:
        try:
            await self._emit(KEEPALIVE)
            self.keepalives += 1
        except TransportError as e:
            logger.warning("keepalive failed for session %s: %s", self.session_id, e)
            self.close("transport_error")

    async def _poll_tick(self) -> None:
        try:
            if self.registry.get(self.session_id) is None:
                logger.info("session %s expired, closing stream", self.session_id)
                self.close("session_expired")
                return

            for item in self.log.query(self.session_id, since=self.watermark):
                await self._emit(feedback_event(item))
                self.watermark = item.timestamp
                self.delivered += 1
        except TransportError as e:
            logger.warning("delivery failed for session %s: %s", self.session_id, e)
            self.close("transport_error")
        except SessionNotFound:
            self.close("session_expired")
        except Exception:
            logger.exception("feedback poll failed for session %s", self.session_id)
            self.close("error")
