from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends

from podium.services.container import ServiceContainer, get_container

router = APIRouter(tags=["meta"])

VERSION = "0.1.0"


@router.get("/health")
def health(c: ServiceContainer = Depends(get_container)) -> Dict[str, Any]:
    return {"ok": True, "service": c.settings.service_name}


@router.get("/health/details")
def health_details(c: ServiceContainer = Depends(get_container)) -> Dict[str, Any]:
    """
    Expanded health surface. Must never raise.
    """
    out: Dict[str, Any] = {"ok": True, "service": c.settings.service_name}

    try:
        out["sessions"] = {
            "live": c.registry.count(),
            "expired_pending_sweep": len(c.registry.expired_ids()),
            "feedback_items": c.feedback_log.count(),
        }
    except Exception as e:
        out["ok"] = False
        out["sessions"] = {"ok": False, "error": str(e)}

    try:
        out["streams"] = c.streams.snapshot()
    except Exception as e:
        out["ok"] = False
        out["streams"] = {"ok": False, "error": str(e)}

    try:
        out["sweeper"] = c.sweeper.status()
    except Exception as e:
        out["ok"] = False
        out["sweeper"] = {"ok": False, "error": str(e)}

    return out


@router.get("/meta/build")
def meta_build(c: ServiceContainer = Depends(get_container)) -> Dict[str, Any]:
    return {
        "service": c.settings.service_name,
        "version": VERSION,
        "commit": os.getenv("PODIUM_GIT_COMMIT") or "unknown",
        "built_at": os.getenv("PODIUM_BUILT_AT") or None,
        "ts": datetime.now(timezone.utc).isoformat(),
    }
