"""Habit registry and completion recording.

Ownership is enforced here: every lookup is scoped to the calling user and a
habit or log belonging to someone else reads exactly like a missing one.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from typing import Any, Optional

from ..errors import NotFound, ValidationError
from ..domain.repositories import CompletionRepository, HabitRepository, UserRepository
from ..logging_config import get_logger
from ..models.habit import DEFAULT_FREQUENCY, DEFAULT_ICON, CompletionLog, Habit
from ..timeutil import ensure_utc, local_day, resolve_timezone, today_in, utcnow
from . import aggregation, streaks

logger = get_logger("services.habits")

HABIT_FIELDS = ("name", "icon", "habit_type", "frequency", "reminder_time", "is_active")
RECENT_LOG_LIMIT = 30


@dataclass
class HabitService:
    habits: HabitRepository
    completions: CompletionRepository
    users: UserRepository
    default_timezone: str = "UTC"

    def user_timezone(self, user_id: int) -> tzinfo:
        user = self.users.get(user_id)
        return resolve_timezone(user.timezone if user else None, self.default_timezone)

    # Habits -------------------------------------------------------------

    def list_active(self, user_id: int) -> list[Habit]:
        return self.habits.list_active(user_id=user_id)

    def get(self, habit_id: int, user_id: int) -> Habit:
        habit = self.habits.get_by_id(habit_id, user_id=user_id)
        if habit is None:
            raise NotFound("Habit not found or access denied")
        return habit

    def create(
        self,
        user_id: int,
        *,
        name: str,
        icon: str | None = None,
        habit_type: str = "positive",
        frequency: dict | None = None,
        reminder_time: str | None = None,
    ) -> Habit:
        if not name or not name.strip():
            raise ValidationError("Name is required")
        habit = Habit(
            user_id=user_id,
            name=name.strip(),
            icon=icon or DEFAULT_ICON,
            habit_type=habit_type,
            frequency=frequency or dict(DEFAULT_FREQUENCY),
            reminder_time=reminder_time,
        )
        habit = self.habits.create(habit, user_id=user_id)
        logger.info("Habit created", extra={"habit_id": habit.id, "user_id": user_id})
        return habit

    def update(self, habit_id: int, user_id: int, changes: dict[str, Any]) -> Habit:
        """Apply the non-None fields of ``changes`` to an owned habit."""

        habit = self.get(habit_id, user_id)
        for key, value in changes.items():
            if key not in HABIT_FIELDS or value is None:
                continue
            setattr(habit, key, value)
        if not habit.name or not habit.name.strip():
            raise ValidationError("Name is required")
        return self.habits.update(habit, user_id=user_id)

    def remove(self, habit_id: int, user_id: int, *, hard: bool = False) -> None:
        """Soft delete by default; ``hard`` also drops logs and grants."""

        if hard:
            if not self.habits.delete(habit_id, user_id=user_id):
                raise NotFound("Habit not found or access denied")
            logger.info("Habit deleted", extra={"habit_id": habit_id, "user_id": user_id})
            return
        if self.habits.deactivate(habit_id, user_id=user_id) is None:
            raise NotFound("Habit not found or access denied")
        logger.info("Habit deactivated", extra={"habit_id": habit_id, "user_id": user_id})

    def detail(
        self,
        habit_id: int,
        user_id: int,
        *,
        window_days: int = 30,
        today: date | None = None,
    ) -> dict:
        """Habit fields plus its streak summary and most recent logs."""

        habit = self.get(habit_id, user_id)
        tz = self.user_timezone(user_id)
        reference = today or today_in(tz)
        logs = self.completions.list_for_habits([habit.id], user_id=user_id)
        summary = streaks.summarize(
            [log.completed_on for log in logs],
            today=reference,
            tz=tz,
            window_days=window_days,
            created_on=local_day(habit.created_at, tz),
        )
        recent = sorted(logs, key=lambda log: ensure_utc(log.completed_at), reverse=True)
        payload = habit.to_dict()
        payload["streak"] = summary.to_dict()
        payload["logs"] = [log.to_dict() for log in recent[:RECENT_LOG_LIMIT]]
        return payload

    # Completions --------------------------------------------------------

    def record_completion(
        self,
        habit_id: int,
        user_id: int,
        *,
        completed_at: Optional[datetime] = None,
        notes: str | None = None,
    ) -> CompletionLog:
        """Log a completion; a second one for the same local day is a ``Conflict``."""

        habit = self.get(habit_id, user_id)
        if not habit.is_active:
            raise ValidationError("Cannot log an inactive habit")
        instant = ensure_utc(completed_at) if completed_at else utcnow()
        tz = self.user_timezone(user_id)
        log = CompletionLog(
            habit_id=habit.id,
            user_id=user_id,
            completed_at=instant,
            completed_on=local_day(instant, tz),
            notes=notes,
        )
        log = self.completions.add(log)
        logger.info(
            "Completion recorded",
            extra={"habit_id": habit.id, "user_id": user_id, "completed_on": str(log.completed_on)},
        )
        return log

    def get_completion(self, log_id: int, user_id: int) -> CompletionLog:
        log = self.completions.get(log_id, user_id=user_id)
        if log is None:
            raise NotFound("Log not found or access denied")
        return log

    def list_completions(
        self,
        user_id: int,
        *,
        habit_id: int | None = None,
        start: date | None = None,
        end: date | None = None,
        limit: int = 50,
    ) -> list[CompletionLog]:
        if habit_id is not None:
            self.get(habit_id, user_id)
        return self.completions.list_for_user(
            user_id=user_id, habit_id=habit_id, start=start, end=end, limit=limit
        )

    def update_completion(
        self,
        log_id: int,
        user_id: int,
        *,
        completed_at: Optional[datetime] = None,
        notes: str | None = None,
    ) -> CompletionLog:
        log = self.get_completion(log_id, user_id)
        if completed_at is not None:
            instant = ensure_utc(completed_at)
            log.completed_at = instant
            log.completed_on = local_day(instant, self.user_timezone(user_id))
        if notes is not None:
            log.notes = notes
        return self.completions.save(log)

    def delete_completion(self, log_id: int, user_id: int) -> None:
        if not self.completions.delete(log_id, user_id=user_id):
            raise NotFound("Log not found or access denied")

    # Analytics ----------------------------------------------------------

    def stats(
        self,
        user_id: int,
        *,
        period: int = 30,
        habit_id: int | None = None,
        today: date | None = None,
    ) -> dict:
        """Dashboard payload for all active habits, or for one habit."""

        if period <= 0:
            raise ValidationError("period must be a positive integer")
        tz = self.user_timezone(user_id)
        reference = today or today_in(tz)
        if habit_id is not None:
            habits = [self.get(habit_id, user_id)]
        else:
            habits = self.list_active(user_id)
        logs = self.completions.list_for_habits(
            [habit.id for habit in habits], user_id=user_id
        )
        return aggregation.overview(habits, logs, today=reference, period=period, tz=tz)


__all__ = ["HabitService"]
