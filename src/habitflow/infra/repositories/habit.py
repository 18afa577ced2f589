"""SQLModel implementation of the habit registry."""

from __future__ import annotations

from typing import Callable, Optional

from sqlmodel import Session, select

from ...models.habit import Habit
from ...models.notification import AchievementGrant
from ...timeutil import utcnow


class SQLModelHabitRepository:
    """SQLModel-based habit repository implementation."""

    def __init__(self, session_factory: Callable[[], Session]):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    def get_by_id(self, habit_id: int, *, user_id: int) -> Optional[Habit]:
        """Retrieve a habit by ID, scoped to its owner."""
        with self.session_factory() as session:
            obj = session.exec(
                select(Habit).where(Habit.id == habit_id, Habit.user_id == user_id)
            ).first()
            if obj:
                session.expunge(obj)
            return obj

    def list_all(self, *, user_id: int, include_inactive: bool = False) -> list[Habit]:
        """List habits newest first, optionally including inactive ones."""
        with self.session_factory() as session:
            statement = (
                select(Habit)
                .where(Habit.user_id == user_id)
                .order_by(Habit.created_at.desc(), Habit.id.desc())  # type: ignore[union-attr]
            )

            if not include_inactive:
                statement = statement.where(Habit.is_active == True)  # noqa: E712

            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def list_active(self, *, user_id: int) -> list[Habit]:
        """List only active habits."""
        return self.list_all(user_id=user_id, include_inactive=False)

    def create(self, habit: Habit, *, user_id: int) -> Habit:
        """Create a new habit."""
        with self.session_factory() as session:
            habit.user_id = user_id
            session.add(habit)
            session.commit()
            session.refresh(habit)
            session.expunge(habit)
            return habit

    def update(self, habit: Habit, *, user_id: int) -> Habit:
        """Persist changes to an existing habit."""
        with self.session_factory() as session:
            habit.user_id = user_id
            habit.updated_at = utcnow()
            habit = session.merge(habit)
            session.commit()
            session.refresh(habit)
            session.expunge(habit)
            return habit

    def deactivate(self, habit_id: int, *, user_id: int) -> Optional[Habit]:
        """Soft delete a habit, keeping its logs."""
        with self.session_factory() as session:
            habit = session.exec(
                select(Habit).where(Habit.id == habit_id, Habit.user_id == user_id)
            ).first()
            if habit is None:
                return None
            habit.is_active = False
            habit.updated_at = utcnow()
            session.add(habit)
            session.commit()
            session.refresh(habit)
            session.expunge(habit)
            return habit

    def delete(self, habit_id: int, *, user_id: int) -> bool:
        """Hard delete a habit; logs cascade through the relationship."""
        with self.session_factory() as session:
            habit = session.exec(
                select(Habit).where(Habit.id == habit_id, Habit.user_id == user_id)
            ).first()
            if habit is None:
                return False
            for grant in session.exec(
                select(AchievementGrant).where(AchievementGrant.habit_id == habit_id)
            ).all():
                session.delete(grant)
            session.delete(habit)
            session.commit()
            return True


__all__ = ["SQLModelHabitRepository"]
