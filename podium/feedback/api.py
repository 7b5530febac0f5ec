from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from podium.errors import SessionNotFound, ValidationError
from podium.runtime.rate_limit import client_id
from podium.services.container import ServiceContainer, get_container
from podium.sessions.api import NOT_FOUND

router = APIRouter(prefix="/v1/sessions", tags=["feedback"])


class FeedbackReq(BaseModel):
    # left loose so a missing or non-string text is a 400, not a 422
    text: Any = None


@router.post("/{session_id}/feedback")
def submit_feedback(
    session_id: str,
    req: FeedbackReq,
    request: Request,
    c: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    if c.registry.get(session_id) is None:
        raise HTTPException(status_code=404, detail=NOT_FOUND)

    peer = request.client.host if request.client else None
    if c.feedback_limiter.hit(f"{session_id}:{client_id(request.headers, peer)}"):
        raise HTTPException(status_code=429, detail="Too many feedback submissions, slow down")

    try:
        item = c.feedback_log.append(session_id, req.text)
    except SessionNotFound:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"success": True, "feedbackId": item.id}


@router.get("/{session_id}/feedback")
def list_feedback(
    session_id: str,
    since: Optional[datetime] = None,
    c: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    """
    Polling fallback for consumers that cannot hold an SSE connection.
    """
    if c.registry.get(session_id) is None:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    items = c.feedback_log.query(session_id, since=since)
    return {"count": len(items), "feedback": [i.to_dict() for i in items]}
