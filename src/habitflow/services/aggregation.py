"""Bucket completions into trailing day and week windows.

Buckets are always returned oldest first; charts and the weekly summary email
read them left to right.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta, timezone, tzinfo
from typing import Iterable, Mapping, Sequence

from ..models.habit import CompletionLog, Habit
from ..timeutil import local_day
from .streaks import completion_rate, current_streak, best_streak

WEEKDAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


def weekday_index(day: date) -> int:
    """Return 0=Sunday .. 6=Saturday, the numbering used in habit frequencies."""

    return day.isoweekday() % 7


def _configured_days(frequency: Mapping | None) -> set[int]:
    raw = (frequency or {}).get("days") or []
    days: set[int] = set()
    for value in raw:
        try:
            index = int(value)
        except (TypeError, ValueError):
            continue
        if 0 <= index <= 6:
            days.add(index)
    return days


def is_scheduled(habit: Habit, day: date, tz: tzinfo = timezone.utc) -> bool:
    """Return True when ``habit``'s frequency calls for it on ``day``."""

    frequency = habit.frequency or {}
    kind = frequency.get("type", "daily")
    days = _configured_days(frequency)
    if kind == "weekly":
        if not days and habit.created_at is not None:
            days = {weekday_index(local_day(habit.created_at, tz))}
        return not days or weekday_index(day) in days
    if kind == "custom" and days:
        return weekday_index(day) in days
    return True


def _rate(completed: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round(completed / total * 100, 2)


@dataclass(slots=True, frozen=True)
class DayBucket:
    day: date
    completed: int
    total: int
    rate: float

    def to_dict(self) -> dict:
        return {
            "date": self.day.isoformat(),
            "weekday": WEEKDAY_NAMES[weekday_index(self.day)],
            "completed": self.completed,
            "total": self.total,
            "completionRate": self.rate,
        }


@dataclass(slots=True, frozen=True)
class WeekBucket:
    label: str
    start_date: date
    end_date: date
    completed: int
    total: int
    rate: float

    def to_dict(self) -> dict:
        return {
            "week": self.label,
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
            "completed": self.completed,
            "total": self.total,
            "completionRate": self.rate,
        }


def _days_by_habit(logs: Iterable[CompletionLog]) -> dict[int, set[date]]:
    grouped: dict[int, set[date]] = defaultdict(set)
    for log in logs:
        if log.completed_on is None:
            continue
        grouped[log.habit_id].add(log.completed_on)
    return grouped


def _tally(
    habits: Sequence[Habit],
    done: Mapping[int, set[date]],
    day: date,
    tz: tzinfo,
) -> tuple[int, int]:
    completed = 0
    total = 0
    for habit in habits:
        if not habit.is_active or not is_scheduled(habit, day, tz):
            continue
        total += 1
        if day in done.get(habit.id, ()):
            completed += 1
    return completed, total


def day_buckets(
    habits: Sequence[Habit],
    logs: Iterable[CompletionLog],
    *,
    today: date,
    days: int = 7,
    tz: tzinfo = timezone.utc,
) -> list[DayBucket]:
    """Per-day completion counts for the last ``days`` days (oldest first)."""

    done = _days_by_habit(logs)
    buckets: list[DayBucket] = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        completed, total = _tally(habits, done, day, tz)
        buckets.append(DayBucket(day=day, completed=completed, total=total, rate=_rate(completed, total)))
    return buckets


def week_buckets(
    habits: Sequence[Habit],
    logs: Iterable[CompletionLog],
    *,
    today: date,
    weeks: int = 4,
    tz: tzinfo = timezone.utc,
) -> list[WeekBucket]:
    """Trailing 7-day windows ending today, labelled ``Week 1..N`` oldest first."""

    done = _days_by_habit(logs)
    buckets: list[WeekBucket] = []
    for index in range(weeks):
        weeks_back = weeks - 1 - index
        end = today - timedelta(days=weeks_back * 7)
        start = end - timedelta(days=6)
        completed = 0
        total = 0
        for offset in range(7):
            day_completed, day_total = _tally(habits, done, start + timedelta(days=offset), tz)
            completed += day_completed
            total += day_total
        buckets.append(
            WeekBucket(
                label=f"Week {index + 1}",
                start_date=start,
                end_date=end,
                completed=completed,
                total=total,
                rate=_rate(completed, total),
            )
        )
    return buckets


def habit_streaks(
    habits: Sequence[Habit],
    logs: Iterable[CompletionLog],
    *,
    today: date,
) -> list[dict]:
    done = _days_by_habit(logs)
    rows = []
    for habit in habits:
        days = done.get(habit.id, set())
        rows.append(
            {
                "habitId": habit.id,
                "habitName": habit.name,
                "habitIcon": habit.icon,
                "streak": current_streak(days, today=today),
                "bestStreak": best_streak(days),
            }
        )
    return rows


def overview(
    habits: Sequence[Habit],
    logs: Sequence[CompletionLog],
    *,
    today: date,
    period: int = 30,
    tz: tzinfo = timezone.utc,
) -> dict:
    """Assemble the dashboard statistics payload.

    ``logs`` should cover at least ``period`` days (and 28 days for the week
    buckets) plus whatever history the streaks need.
    """

    active = [habit for habit in habits if habit.is_active]
    if not active:
        return {
            "totalHabits": 0,
            "completedToday": 0,
            "completionRate": 0.0,
            "streaks": [],
            "weeklyStats": [],
            "monthlyStats": [],
            "period": period,
            "totalLogs": 0,
        }

    active_ids = {habit.id for habit in active}
    relevant = [log for log in logs if log.habit_id in active_ids]
    done = _days_by_habit(relevant)
    period_start = today - timedelta(days=period - 1)

    completed_today = sum(1 for days in done.values() if today in days)
    logs_in_period = sum(
        1 for days in done.values() for day in days if period_start <= day <= today
    )
    rates = [
        completion_rate(
            done.get(habit.id, set()),
            today=today,
            window_days=period,
            created_on=local_day(habit.created_at, tz) if habit.created_at else None,
        )
        for habit in active
    ]

    return {
        "totalHabits": len(active),
        "completedToday": completed_today,
        "completionRate": round(sum(rates) / len(rates), 2),
        "streaks": habit_streaks(active, relevant, today=today),
        "weeklyStats": [bucket.to_dict() for bucket in day_buckets(active, relevant, today=today, tz=tz)],
        "monthlyStats": [bucket.to_dict() for bucket in week_buckets(active, relevant, today=today, tz=tz)],
        "period": period,
        "totalLogs": logs_in_period,
    }


__all__ = [
    "DayBucket",
    "WeekBucket",
    "day_buckets",
    "habit_streaks",
    "is_scheduled",
    "overview",
    "week_buckets",
    "weekday_index",
]
