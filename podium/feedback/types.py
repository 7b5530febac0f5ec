from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict

from podium.types.core import to_iso


@dataclass(frozen=True)
class FeedbackItem:
    id: str
    session_id: str
    text: str              # trimmed, non-empty
    timestamp: datetime    # strictly increasing per session; may lead the clock by microseconds under bursts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "sessionId": self.session_id,
            "text": self.text,
            "timestamp": to_iso(self.timestamp),
        }
