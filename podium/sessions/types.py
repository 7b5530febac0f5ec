from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict

from podium.types.core import to_iso


@dataclass(frozen=True)
class Session:
    """
    One presenter/audience pairing. Live iff now < expires_at.
    """
    id: str
    created_at: datetime
    expires_at: datetime

    def is_live(self, now: datetime) -> bool:
        return now < self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "createdAt": to_iso(self.created_at),
            "expiresAt": to_iso(self.expires_at),
        }
