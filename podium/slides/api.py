from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from podium.errors import SessionNotFound
from podium.services.container import ServiceContainer, get_container
from podium.sessions.api import NOT_FOUND
from podium.slides.types import SlideSnapshot

router = APIRouter(prefix="/v1/sessions", tags=["slides"])


class SlidePublishReq(BaseModel):
    slide: Optional[Dict[str, Any]] = None


@router.post("/{session_id}/slide")
def publish_slide(
    session_id: str,
    req: SlidePublishReq,
    c: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    """
    Replace the session's current slide. `{"slide": null}` clears it.
    """
    snapshot = None
    if req.slide is not None:
        snapshot = SlideSnapshot.from_payload(req.slide, published_at=c.clock.now())

    try:
        c.slide_channel.publish(session_id, snapshot)
    except SessionNotFound:
        raise HTTPException(status_code=404, detail=NOT_FOUND)

    return {"success": True, "slide": snapshot.to_dict() if snapshot else None}


@router.get("/{session_id}/slide")
def get_slide(session_id: str, c: ServiceContainer = Depends(get_container)) -> Dict[str, Any]:
    if c.registry.get(session_id) is None:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    snapshot = c.slide_channel.latest(session_id)
    return {"slide": snapshot.to_dict() if snapshot else None}
