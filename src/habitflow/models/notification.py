"""Notification preferences and granted achievements."""

from __future__ import annotations

from datetime import date, datetime
from typing import ClassVar, Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from ..timeutil import ensure_utc, utcnow

DEFAULT_REMINDER_TIME = "09:00"


class NotificationPreference(SQLModel, table=True):
    """Per-user email opt-ins. Absent rows mean every flag is on."""

    __tablename__: ClassVar[str] = "notification_preference"

    user_id: int = Field(foreign_key="user.id", primary_key=True)
    daily_reminder: bool = Field(default=True, nullable=False)
    weekly_summary: bool = Field(default=True, nullable=False)
    achievement_alerts: bool = Field(default=True, nullable=False)
    reminder_time: str = Field(default=DEFAULT_REMINDER_TIME, max_length=5)
    updated_at: datetime = Field(default_factory=utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "daily_reminder": self.daily_reminder,
            "weekly_summary": self.weekly_summary,
            "achievement_alerts": self.achievement_alerts,
            "reminder_time": self.reminder_time,
            "updated_at": ensure_utc(self.updated_at).isoformat(),
        }


class AchievementGrant(SQLModel, table=True):
    """A streak milestone already announced for one run of a habit.

    ``streak_start`` identifies the run: a streak that breaks and is rebuilt
    starts on a different day, so its milestones are announced again.
    """

    __tablename__: ClassVar[str] = "achievement_grant"
    __table_args__ = (
        UniqueConstraint(
            "habit_id", "milestone", "streak_start", name="uq_achievement_habit_milestone_run"
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    habit_id: int = Field(foreign_key="habit.id", nullable=False, index=True)
    milestone: int = Field(nullable=False)
    streak_start: date = Field(nullable=False)
    granted_at: datetime = Field(default_factory=utcnow, nullable=False)
