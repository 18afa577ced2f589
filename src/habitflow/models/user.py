"""User model supporting authentication and per-user calendar settings."""

from __future__ import annotations

from datetime import datetime
from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel

from ..timeutil import utcnow


class User(SQLModel, table=True):
    """Application user with credentials and a home timezone."""

    __tablename__: ClassVar[str] = "user"

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(nullable=False, unique=True, index=True, max_length=255)
    password_hash: str = Field(nullable=False, max_length=255)
    display_name: Optional[str] = Field(default=None, max_length=80)
    timezone: str = Field(default="UTC", nullable=False, max_length=64)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    last_login: Optional[datetime] = Field(default=None)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.display_name,
            "timezone": self.timezone,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "last_login": self.last_login.isoformat() if self.last_login else None,
        }
