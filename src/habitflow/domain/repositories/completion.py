"""Completion log protocol."""

from __future__ import annotations

from datetime import date
from typing import Optional, Protocol

from ...models.habit import CompletionLog


class CompletionRepository(Protocol):
    """Append-mostly store of habit completions, one per habit per day."""

    def get(self, log_id: int, *, user_id: int) -> Optional[CompletionLog]:
        ...

    def list_for_user(
        self,
        *,
        user_id: int,
        habit_id: int | None = None,
        start: date | None = None,
        end: date | None = None,
        limit: int | None = None,
    ) -> list[CompletionLog]:
        """List completions newest first, filtered by habit and day range."""
        ...

    def list_for_habits(
        self, habit_ids: list[int], *, user_id: int, since: date | None = None
    ) -> list[CompletionLog]:
        ...

    def exists_on(self, habit_id: int, day: date, *, exclude_id: int | None = None) -> bool:
        ...

    def add(self, log: CompletionLog) -> CompletionLog:
        """Insert a completion; raises ``Conflict`` for a duplicate day."""
        ...

    def save(self, log: CompletionLog) -> CompletionLog:
        ...

    def delete(self, log_id: int, *, user_id: int) -> bool:
        ...
