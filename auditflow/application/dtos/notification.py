"""DTOs for in-app notifications (no dependency on ORM)."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class NotificationResult:
    id: str
    user_id: str
    title: str
    message: str
    type: str
    link: str | None
    is_read: bool
    metadata: dict[str, Any]
    created_at: datetime

    def to_payload(self) -> dict[str, Any]:
        """Shape pushed over the real-time channel."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "message": self.message,
            "type": self.type,
            "link": self.link,
            "metadata": self.metadata,
            "created_at": self.created_at.isoformat(),
        }
