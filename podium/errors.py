from __future__ import annotations


class PodiumError(Exception):
    """Base class for session/feedback/stream errors."""


class SessionNotFound(PodiumError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"session not found or expired: {session_id}")
        self.session_id = session_id


class SessionExpired(SessionNotFound):
    """
    The id existed but its TTL elapsed. Callers see it as SessionNotFound.
    """


class ValidationError(PodiumError):
    pass


class TransportError(PodiumError):
    pass


class RateLimited(PodiumError):
    pass


class StreamLimitReached(PodiumError):
    pass
