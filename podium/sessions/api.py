from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException

from podium.services.container import ServiceContainer, get_container
from podium.types.core import to_iso

router = APIRouter(prefix="/v1/sessions", tags=["sessions"])

NOT_FOUND = "Session not found or expired"


@router.post("")
def create_session(c: ServiceContainer = Depends(get_container)) -> Dict[str, Any]:
    """
    Start a session. `id` and `sessionId` carry the same value; `audienceUrl`
    is the relative path to share with the room.
    """
    session = c.registry.create()
    return {
        "id": session.id,
        "sessionId": session.id,
        "audienceUrl": c.audience_url(session.id),
        "createdAt": to_iso(session.created_at),
        "expiresAt": to_iso(session.expires_at),
    }


@router.get("/{session_id}")
def get_session(session_id: str, c: ServiceContainer = Depends(get_container)) -> Dict[str, Any]:
    session = c.registry.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return session.to_dict()


@router.delete("/{session_id}")
def delete_session(session_id: str, c: ServiceContainer = Depends(get_container)) -> Dict[str, Any]:
    deleted = c.registry.delete(session_id)
    return {"ok": True, "deleted": deleted}
