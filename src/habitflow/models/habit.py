"""Habit definitions and their completion log."""

from __future__ import annotations

from datetime import date, datetime
from typing import ClassVar, Optional

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlmodel import Field, Relationship, SQLModel

from ..timeutil import ensure_utc, utcnow

DEFAULT_ICON = "🎯"
DEFAULT_FREQUENCY: dict = {"type": "daily", "count": 1}


def _default_frequency() -> dict:
    return dict(DEFAULT_FREQUENCY)


class Habit(SQLModel, table=True):
    """A user-defined recurring action, either to build or to avoid."""

    __tablename__: ClassVar[str] = "habit"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    name: str = Field(nullable=False, max_length=100, index=True)
    icon: str = Field(default=DEFAULT_ICON, max_length=16)
    habit_type: str = Field(default="positive", max_length=16)
    frequency: dict = Field(default_factory=_default_frequency, sa_column=Column(JSON, nullable=False))
    reminder_time: Optional[str] = Field(default=None, max_length=5)
    is_active: bool = Field(default=True, nullable=False, index=True)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=utcnow, nullable=False)

    logs: list["CompletionLog"] = Relationship(
        back_populates="habit",
        sa_relationship=relationship(
            "CompletionLog", back_populates="habit", cascade="all, delete-orphan"
        ),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "icon": self.icon,
            "type": self.habit_type,
            "frequency": self.frequency,
            "reminder_time": self.reminder_time,
            "is_active": self.is_active,
            "created_at": ensure_utc(self.created_at).isoformat(),
            "updated_at": ensure_utc(self.updated_at).isoformat(),
        }


class CompletionLog(SQLModel, table=True):
    """A record that a habit was completed at a given instant.

    ``completed_on`` is the owner's local calendar day for ``completed_at``;
    the unique constraint allows one entry per habit per day.
    """

    __tablename__: ClassVar[str] = "habit_log"
    __table_args__ = (UniqueConstraint("habit_id", "completed_on", name="uq_habit_log_habit_day"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    habit_id: int = Field(foreign_key="habit.id", nullable=False, index=True)
    user_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    completed_at: datetime = Field(nullable=False)
    completed_on: date = Field(nullable=False, index=True)
    notes: Optional[str] = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=utcnow, nullable=False)

    habit: "Habit" = Relationship(
        back_populates="logs",
        sa_relationship=relationship("Habit", back_populates="logs"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "habit_id": self.habit_id,
            "user_id": self.user_id,
            "completed_at": ensure_utc(self.completed_at).isoformat(),
            "completed_on": self.completed_on.isoformat(),
            "notes": self.notes,
            "created_at": ensure_utc(self.created_at).isoformat(),
            "updated_at": ensure_utc(self.updated_at).isoformat(),
        }
