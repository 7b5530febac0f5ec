from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from podium.errors import SessionNotFound, StreamLimitReached
from podium.services.container import ServiceContainer, get_container
from podium.sessions.api import NOT_FOUND
from podium.stream.connection import FeedbackStream
from podium.stream.events import SSE_HEADERS

router = APIRouter(prefix="/v1/sessions", tags=["feedback-stream"])


@router.get("/{session_id}/stream")
async def feedback_stream(
    session_id: str,
    since: Optional[datetime] = None,
    c: ServiceContainer = Depends(get_container),
):
    """
    SSE stream of new feedback for the presenter.

    Frames are `data: {"type": "feedback", "payload": {...}}` plus
    `: keepalive` comments. Pass `since` on reconnect to resume from the
    last timestamp seen; delivery is at-least-once, dedupe by payload id.
    """
    stream = FeedbackStream(
        session_id,
        registry=c.registry,
        log=c.feedback_log,
        tracker=c.streams,
        keepalive_s=c.settings.stream_keepalive_s,
        poll_s=c.settings.stream_poll_s,
        since=since,
    )
    try:
        stream.open()
    except SessionNotFound:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    except StreamLimitReached as e:
        raise HTTPException(status_code=503, detail=str(e))

    return StreamingResponse(stream.events(), media_type="text/event-stream", headers=SSE_HEADERS)
