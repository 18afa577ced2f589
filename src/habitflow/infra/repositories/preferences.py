"""Notification preferences and achievement grants."""

from __future__ import annotations

from datetime import date
from typing import Callable, Iterable

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from ...models.notification import AchievementGrant, NotificationPreference
from ...timeutil import utcnow

PREFERENCE_FLAGS = ("daily_reminder", "weekly_summary", "achievement_alerts")


class SQLModelPreferenceRepository:
    """Preferences keyed by user id; missing rows read as the defaults."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get(self, user_id: int) -> NotificationPreference:
        with self.session_factory() as session:
            pref = session.get(NotificationPreference, user_id)
            if pref is None:
                return NotificationPreference(user_id=user_id)
            session.expunge(pref)
            return pref

    def upsert(self, user_id: int, **changes) -> NotificationPreference:
        """Update the stored row, creating it from defaults when absent."""
        with self.session_factory() as session:
            pref = session.get(NotificationPreference, user_id)
            if pref is None:
                pref = NotificationPreference(user_id=user_id)
            for key, value in changes.items():
                if value is not None and hasattr(pref, key):
                    setattr(pref, key, value)
            pref.updated_at = utcnow()
            session.add(pref)
            session.commit()
            session.refresh(pref)
            session.expunge(pref)
            return pref

    def opted_out_user_ids(self, flag: str) -> set[int]:
        if flag not in PREFERENCE_FLAGS:
            raise ValueError(f"Unknown preference flag: {flag}")
        column = getattr(NotificationPreference, flag)
        with self.session_factory() as session:
            rows = session.exec(
                select(NotificationPreference.user_id).where(column == False)  # noqa: E712
            ).all()
            return set(rows)


class SQLModelAchievementRepository:
    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def granted_milestones(self, habit_ids: Iterable[int]) -> set[tuple[int, int, date]]:
        ids = list(habit_ids)
        if not ids:
            return set()
        with self.session_factory() as session:
            rows = session.exec(
                select(
                    AchievementGrant.habit_id, AchievementGrant.milestone, AchievementGrant.streak_start
                ).where(
                    AchievementGrant.habit_id.in_(ids)  # type: ignore[union-attr]
                )
            ).all()
            return {(habit_id, milestone, start) for habit_id, milestone, start in rows}

    def grant(
        self, *, user_id: int, habit_id: int, milestone: int, streak_start: date
    ) -> AchievementGrant | None:
        with self.session_factory() as session:
            grant = AchievementGrant(
                user_id=user_id, habit_id=habit_id, milestone=milestone, streak_start=streak_start
            )
            session.add(grant)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                return None
            session.refresh(grant)
            session.expunge(grant)
            return grant


__all__ = [
    "PREFERENCE_FLAGS",
    "SQLModelAchievementRepository",
    "SQLModelPreferenceRepository",
]
