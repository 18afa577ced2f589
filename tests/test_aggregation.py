"""Tests for schedule eligibility and day/week bucketing."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from conftest import TODAY, at_noon
from habitflow.models import CompletionLog, Habit
from habitflow.services.aggregation import (
    day_buckets,
    is_scheduled,
    overview,
    week_buckets,
    weekday_index,
)

MONDAY = date(2024, 5, 13)


def make_habit(habit_id: int, frequency: dict | None = None, *, created: date | None = None, active=True):
    return Habit(
        id=habit_id,
        user_id=1,
        name=f"Habit {habit_id}",
        frequency=frequency or {"type": "daily", "count": 1},
        is_active=active,
        created_at=at_noon(created or TODAY - timedelta(days=100)),
    )


def make_log(habit: Habit, day: date) -> CompletionLog:
    return CompletionLog(habit_id=habit.id, user_id=1, completed_at=at_noon(day), completed_on=day)


class TestSchedule:
    def test_weekday_numbering_starts_sunday(self):
        assert weekday_index(date(2024, 5, 12)) == 0
        assert weekday_index(MONDAY) == 1
        assert weekday_index(date(2024, 5, 18)) == 6

    def test_daily_is_always_scheduled(self):
        habit = make_habit(1)
        assert all(is_scheduled(habit, TODAY - timedelta(days=n)) for n in range(7))

    def test_weekly_uses_configured_days(self):
        habit = make_habit(1, {"type": "weekly", "days": [1]})
        assert is_scheduled(habit, MONDAY)
        assert not is_scheduled(habit, TODAY)

    def test_weekly_without_days_uses_creation_weekday(self):
        habit = make_habit(1, {"type": "weekly"}, created=TODAY - timedelta(days=7))
        assert is_scheduled(habit, TODAY)
        assert not is_scheduled(habit, MONDAY)

    def test_custom_without_days_is_every_day(self):
        habit = make_habit(1, {"type": "custom"})
        assert is_scheduled(habit, MONDAY)
        assert is_scheduled(habit, TODAY)

    def test_custom_with_days(self):
        habit = make_habit(1, {"type": "custom", "days": [0, 6]})
        assert is_scheduled(habit, date(2024, 5, 12))
        assert not is_scheduled(habit, MONDAY)


class TestDayBuckets:
    def test_seven_buckets_oldest_first(self):
        buckets = day_buckets([make_habit(1)], [], today=TODAY)
        assert len(buckets) == 7
        assert [bucket.day for bucket in buckets] == sorted(bucket.day for bucket in buckets)
        assert buckets[-1].day == TODAY
        assert buckets[0].day == TODAY - timedelta(days=6)

    def test_totals_follow_schedule(self):
        daily = make_habit(1)
        weekly = make_habit(2, {"type": "weekly", "days": [1]})
        buckets = {bucket.day: bucket for bucket in day_buckets([daily, weekly], [], today=TODAY)}
        assert buckets[MONDAY].total == 2
        assert buckets[TODAY].total == 1

    def test_completed_counts_distinct_habits(self):
        first, second = make_habit(1), make_habit(2)
        logs = [make_log(first, TODAY), make_log(second, TODAY), make_log(first, MONDAY)]
        buckets = {bucket.day: bucket for bucket in day_buckets([first, second], logs, today=TODAY)}
        assert buckets[TODAY].completed == 2
        assert buckets[TODAY].rate == 100.0
        assert buckets[MONDAY].completed == 1
        assert buckets[MONDAY].rate == 50.0

    def test_inactive_habits_are_excluded(self):
        active, archived = make_habit(1), make_habit(2, active=False)
        logs = [make_log(archived, TODAY)]
        today_bucket = day_buckets([active, archived], logs, today=TODAY)[-1]
        assert today_bucket.total == 1
        assert today_bucket.completed == 0

    def test_no_habits_means_zero_rate(self):
        buckets = day_buckets([], [], today=TODAY)
        assert all(bucket.rate == 0.0 and bucket.total == 0 for bucket in buckets)

    def test_to_dict_shape(self):
        payload = day_buckets([make_habit(1)], [], today=TODAY)[-1].to_dict()
        assert payload == {
            "date": "2024-05-15",
            "weekday": "Wed",
            "completed": 0,
            "total": 1,
            "completionRate": 0.0,
        }


class TestWeekBuckets:
    def test_trailing_windows_end_today(self):
        buckets = week_buckets([make_habit(1)], [], today=TODAY)
        assert [bucket.label for bucket in buckets] == ["Week 1", "Week 2", "Week 3", "Week 4"]
        assert buckets[-1].end_date == TODAY
        assert buckets[-1].start_date == TODAY - timedelta(days=6)
        assert buckets[0].start_date == TODAY - timedelta(days=27)

    def test_week_totals(self):
        habit = make_habit(1)
        logs = [make_log(habit, TODAY - timedelta(days=n)) for n in range(3)]
        last = week_buckets([habit], logs, today=TODAY)[-1]
        assert last.total == 7
        assert last.completed == 3
        assert last.rate == pytest.approx(42.86, abs=0.01)


class TestOverview:
    def test_empty_user(self):
        payload = overview([], [], today=TODAY)
        assert payload["totalHabits"] == 0
        assert payload["completionRate"] == 0.0
        assert payload["weeklyStats"] == []

    def test_dashboard_payload(self):
        first, second = make_habit(1), make_habit(2)
        logs = [make_log(first, TODAY), make_log(first, TODAY - timedelta(days=1))]
        payload = overview([first, second], logs, today=TODAY, period=10)
        assert payload["totalHabits"] == 2
        assert payload["completedToday"] == 1
        assert payload["totalLogs"] == 2
        assert payload["period"] == 10
        # (20% + 0%) / 2
        assert payload["completionRate"] == 10.0
        assert len(payload["weeklyStats"]) == 7
        assert len(payload["monthlyStats"]) == 4
        streaks = {row["habitId"]: row for row in payload["streaks"]}
        assert streaks[1]["streak"] == 2
        assert streaks[2]["streak"] == 0
