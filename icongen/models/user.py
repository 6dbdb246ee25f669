from datetime import datetime

from beanie import Document, Indexed
from pydantic import Field


class User(Document):
    """Account owned by the external auth service; read-only here apart from credits."""
    email: Indexed(str, unique=True)
    name: str = ""
    picture: str | None = None
    session_version: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "users"
