"""Habit registry protocol."""

from __future__ import annotations

from typing import Optional, Protocol

from ...models.habit import Habit


class HabitRepository(Protocol):
    """Repository for managing habit definitions."""

    def get_by_id(self, habit_id: int, *, user_id: int) -> Optional[Habit]:
        """Retrieve a habit owned by ``user_id``."""
        ...

    def list_all(self, *, user_id: int, include_inactive: bool = False) -> list[Habit]:
        """List habits, optionally including deactivated ones."""
        ...

    def list_active(self, *, user_id: int) -> list[Habit]:
        """List only active habits."""
        ...

    def create(self, habit: Habit, *, user_id: int) -> Habit:
        ...

    def update(self, habit: Habit, *, user_id: int) -> Habit:
        ...

    def deactivate(self, habit_id: int, *, user_id: int) -> Optional[Habit]:
        """Soft delete: flip ``is_active`` off and keep the logs."""
        ...

    def delete(self, habit_id: int, *, user_id: int) -> bool:
        """Hard delete the habit together with its logs and grants."""
        ...
