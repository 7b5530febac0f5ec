from __future__ import annotations

from typing import Optional

from fastapi import Request

from podium.config import Settings, load_settings
from podium.feedback.log import FeedbackLog
from podium.runtime.rate_limit import SlidingWindowLimiter
from podium.runtime.sweeper import ExpirySweeper
from podium.sessions.registry import SessionRegistry
from podium.slides.channel import SlideChannel
from podium.stream.tracker import StreamTracker
from podium.types.core import Clock, SystemClock


class ServiceContainer:
    """
    Wires one instance of each component around a shared registry and clock.
    Tests build their own with a ManualClock.
    """

    def __init__(self, settings: Optional[Settings] = None, clock: Optional[Clock] = None) -> None:
        self.settings = settings or load_settings()
        self.clock = clock or SystemClock()

        self.registry = SessionRegistry(clock=self.clock, ttl_s=self.settings.session_ttl_s)
        self.feedback_log = FeedbackLog(self.registry, max_chars=self.settings.feedback_max_chars)
        self.slide_channel = SlideChannel(self.registry)
        self.streams = StreamTracker(max_connections=self.settings.max_streams)

        self.feedback_limiter = SlidingWindowLimiter(
            limit=self.settings.feedback_rate_limit,
            window_s=self.settings.feedback_rate_window_s,
            clock=self.clock,
        )
        self.registry.add_eviction_listener(lambda sid: self.feedback_limiter.forget(f"{sid}:"))

        self.sweeper = ExpirySweeper(
            self.registry,
            interval_s=self.settings.sweep_interval_s,
            enabled=self.settings.sweep_enabled,
        )

    def audience_url(self, session_id: str) -> str:
        return f"{self.settings.audience_path}/{session_id}"


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container
