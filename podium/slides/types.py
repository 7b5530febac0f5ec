from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict

from podium.types.core import new_id, to_iso


@dataclass(frozen=True)
class SlideSnapshot:
    """
    Latest slide for a session. `payload` is opaque here: image slides,
    headline/bullet slides and question slides all pass through untouched.
    """
    id: str
    published_at: datetime
    payload: Dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def from_payload(payload: Dict[str, Any], published_at: datetime) -> "SlideSnapshot":
        sid = payload.get("id")
        if not isinstance(sid, str) or not sid.strip():
            sid = new_id("sld")
        return SlideSnapshot(id=sid, published_at=published_at, payload=dict(payload))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "payload": self.payload,
            "publishedAt": to_iso(self.published_at),
        }
