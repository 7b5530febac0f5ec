from __future__ import annotations

import json
from typing import Any, Dict

from podium.feedback.types import FeedbackItem

KEEPALIVE = ": keepalive\n\n"

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def _sse_data(data: Dict[str, Any]) -> str:
    return f"data: {json.dumps(data)}\n\n"


def feedback_event(item: FeedbackItem) -> str:
    return _sse_data({"type": "feedback", "payload": item.to_dict()})
