from datetime import datetime

from beanie import Document, PydanticObjectId
from pydantic import Field

ICON_PENDING = "pending"
ICON_STORED = "stored"


class Icon(Document):
    """One generated image. The document id is also the object-storage key."""
    user_id: PydanticObjectId
    prompt: str
    status: str = ICON_PENDING  # pending | stored
    storage_key: str | None = None
    content_type: str = "image/png"
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "icons"
        indexes = [[("user_id", 1), ("created_at", -1)]]
