"""Notification preference and achievement grant protocols."""

from __future__ import annotations

from datetime import date
from typing import Iterable, Protocol

from ...models.notification import AchievementGrant, NotificationPreference


class PreferenceRepository(Protocol):
    def get(self, user_id: int) -> NotificationPreference:
        """Return stored preferences or the all-enabled defaults."""
        ...

    def upsert(self, user_id: int, **changes) -> NotificationPreference:
        ...

    def opted_out_user_ids(self, flag: str) -> set[int]:
        """Users whose stored preference turns ``flag`` off."""
        ...


class AchievementRepository(Protocol):
    def granted_milestones(self, habit_ids: Iterable[int]) -> set[tuple[int, int, date]]:
        """Return ``(habit_id, milestone, streak_start)`` triples already announced."""
        ...

    def grant(
        self, *, user_id: int, habit_id: int, milestone: int, streak_start: date
    ) -> AchievementGrant | None:
        """Record a grant; returns None when it already existed."""
        ...
