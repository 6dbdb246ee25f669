from datetime import datetime
from typing import Any

from beanie import Document
from pydantic import Field


class AuditLog(Document):
    """Append-only record of credit movements and stored icons."""
    user_id: str | None = None
    event_type: str  # icon_generated, credits_refunded
    entity_type: str  # icon, icon_request
    entity_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "audit_logs"
        indexes = [
            [("user_id", 1), ("created_at", -1)],
            [("event_type", 1), ("created_at", -1)],
        ]
