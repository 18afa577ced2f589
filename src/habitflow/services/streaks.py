"""Streak and completion-rate calculations.

Every view that needs a streak (habit detail, stats, reminder and summary
emails, achievement detection) goes through this module. The functions are
pure: they take completion values, a reference day and a timezone, and never
touch the database or the clock unless ``today`` is omitted.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Iterable

from ..errors import ValidationError
from ..logging_config import get_logger
from ..timeutil import local_day, parse_timestamp, today_in

logger = get_logger("services.streaks")

MILESTONES: tuple[int, ...] = (7, 14, 30, 60, 100)
RATE_WINDOWS: tuple[int, ...] = (7, 30, 90)


@dataclass(slots=True, frozen=True)
class StreakSummary:
    """Derived streak/rate figures for one habit."""

    current: int
    best: int
    completion_rate: float
    window_days: int
    total_completions: int

    def to_dict(self) -> dict:
        return {
            "current_streak": self.current,
            "best_streak": self.best,
            "completion_rate": self.completion_rate,
            "window_days": self.window_days,
            "total_completions": self.total_completions,
        }


def _to_day(value: object, tz: tzinfo) -> date | None:
    # datetime is a subclass of date, so check it first.
    if isinstance(value, datetime):
        return local_day(value, tz)
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            # A bare calendar date already names the day in any zone.
            if len(text) == 10:
                return date.fromisoformat(text)
            return local_day(parse_timestamp(text), tz)
        except ValueError:
            return None
    return None


def normalize_days(values: Iterable[object], tz: tzinfo = timezone.utc) -> tuple[set[date], int]:
    """Collapse completion values into a set of calendar days.

    Accepts datetimes (naive ones are read as UTC), dates, and ISO-8601
    strings. Returns ``(days, skipped)`` where ``skipped`` counts values that
    were missing or unparseable and therefore left out.
    """

    days: set[date] = set()
    skipped = 0
    for value in values:
        day = _to_day(value, tz)
        if day is None:
            skipped += 1
            continue
        days.add(day)
    if skipped:
        logger.debug("Excluded unusable completion timestamps", extra={"skipped": skipped})
    return days, skipped


def completed_days(values: Iterable[object], tz: tzinfo = timezone.utc) -> set[date]:
    """Return the set of calendar days with at least one completion."""

    days, _ = normalize_days(values, tz)
    return days


def current_streak(days: Iterable[date], *, today: date) -> int:
    """Count consecutive completed days ending today, or yesterday if today is open."""

    day_set = set(days)
    cursor = today if today in day_set else today - timedelta(days=1)
    streak = 0
    while cursor in day_set:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def streak_start(days: Iterable[date], *, today: date) -> date:
    """First day of the current streak (today when there is none)."""

    day_set = set(days)
    end = today if today in day_set else today - timedelta(days=1)
    length = current_streak(day_set, today=today)
    if length == 0:
        return today
    return end - timedelta(days=length - 1)


def best_streak(days: Iterable[date]) -> int:
    """Return the longest run of consecutive days ever recorded."""

    longest = 0
    run = 0
    previous: date | None = None
    for day in sorted(set(days)):
        if previous is not None and day == previous + timedelta(days=1):
            run += 1
        else:
            run = 1
        longest = max(longest, run)
        previous = day
    return longest


def eligible_window(window_days: int, *, today: date, created_on: date | None = None) -> int:
    """Return the number of trailing days a rate is measured over."""

    if window_days <= 0:
        raise ValidationError("window_days must be a positive integer")
    if created_on is None:
        return window_days
    return max(0, min(window_days, (today - created_on).days))


def completion_rate(
    days: Iterable[date],
    *,
    today: date,
    window_days: int,
    created_on: date | None = None,
) -> float:
    """Percentage (0-100) of the trailing eligible window with a completion."""

    window = eligible_window(window_days, today=today, created_on=created_on)
    if window == 0:
        return 0.0
    start = today - timedelta(days=window - 1)
    hits = sum(1 for day in set(days) if start <= day <= today)
    return round(min(100.0, max(0.0, hits / window * 100)), 2)


def milestone_for(streak: int) -> int | None:
    """Return the milestone when ``streak`` is exactly one, else ``None``."""

    return streak if streak in MILESTONES else None


def summarize(
    values: Iterable[object],
    *,
    today: date | None = None,
    tz: tzinfo = timezone.utc,
    window_days: int = 30,
    created_on: date | None = None,
) -> StreakSummary:
    """Compute current/best streak and completion rate in one pass."""

    if window_days <= 0:
        raise ValidationError("window_days must be a positive integer")
    reference = today or today_in(tz)
    days = completed_days(values, tz)
    current = current_streak(days, today=reference)
    return StreakSummary(
        current=current,
        best=max(best_streak(days), current),
        completion_rate=completion_rate(
            days, today=reference, window_days=window_days, created_on=created_on
        ),
        window_days=window_days,
        total_completions=len(days),
    )


__all__ = [
    "MILESTONES",
    "RATE_WINDOWS",
    "StreakSummary",
    "best_streak",
    "completed_days",
    "completion_rate",
    "current_streak",
    "eligible_window",
    "milestone_for",
    "normalize_days",
    "streak_start",
    "summarize",
]
