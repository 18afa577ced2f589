"""Tests for streak and completion-rate calculations.

These cover:
- Current streaks starting today vs yesterday
- Longest streaks across gaps
- Completion rate windows for young habits
- Timestamp normalization across timezones
- Milestone detection
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from conftest import TODAY, streak_days
from habitflow.errors import ValidationError
from habitflow.services.streaks import (
    MILESTONES,
    best_streak,
    completed_days,
    completion_rate,
    current_streak,
    milestone_for,
    normalize_days,
    streak_start,
    summarize,
)


def days_ago(*offsets: int) -> set[date]:
    return {TODAY - timedelta(days=offset) for offset in offsets}


class TestCurrentStreak:
    """Tests for calculating current consecutive day streaks."""

    def test_no_completions_is_zero(self):
        assert current_streak(set(), today=TODAY) == 0

    def test_today_only_is_one(self):
        assert current_streak(days_ago(0), today=TODAY) == 1

    def test_streak_ending_yesterday_still_counts(self):
        """Scenario: completions on -1, -2, -3 and none today."""
        days = days_ago(1, 2, 3)
        assert current_streak(days, today=TODAY) == 3
        assert best_streak(days) == 3

    def test_gap_before_yesterday_breaks_streak(self):
        assert current_streak(days_ago(2, 3, 4), today=TODAY) == 0

    def test_today_adds_one_to_streak_ending_yesterday(self):
        history = days_ago(1, 2, 3, 4)
        without_today = current_streak(history, today=TODAY)
        with_today = current_streak(history | days_ago(0), today=TODAY)
        assert with_today == without_today + 1

    def test_future_days_are_ignored(self):
        days = days_ago(0, 1) | {TODAY + timedelta(days=1)}
        assert current_streak(days, today=TODAY) == 2


class TestBestStreak:
    def test_empty(self):
        assert best_streak([]) == 0

    def test_gap_then_recent_run(self):
        """Scenario: -5,-4,-3 then a gap then -1 and today."""
        days = days_ago(5, 4, 3, 1, 0)
        assert current_streak(days, today=TODAY) == 2
        assert best_streak(days) == 3

    def test_duplicates_do_not_inflate(self):
        days = [TODAY, TODAY, TODAY - timedelta(days=1)]
        assert best_streak(days) == 2

    @pytest.mark.parametrize(
        "offsets",
        [(0,), (1, 2, 3), (0, 1, 5, 6, 7, 8), (10, 11, 12, 0), (2, 4, 6)],
    )
    def test_best_is_never_below_current(self, offsets):
        days = days_ago(*offsets)
        assert best_streak(days) >= current_streak(days, today=TODAY)


class TestCompletionRate:
    def test_young_habit_uses_days_since_creation(self):
        """Scenario: 30-day window, created 5 days ago, 4 completions."""
        days = days_ago(1, 2, 3, 4)
        rate = completion_rate(
            days, today=TODAY, window_days=30, created_on=TODAY - timedelta(days=5)
        )
        assert rate == 80.0

    def test_created_today_is_zero(self):
        rate = completion_rate(days_ago(0), today=TODAY, window_days=30, created_on=TODAY)
        assert rate == 0.0

    def test_full_window(self):
        rate = completion_rate(set(streak_days(30)), today=TODAY, window_days=30)
        assert rate == 100.0

    def test_completions_outside_window_ignored(self):
        days = days_ago(0, 40, 41)
        assert completion_rate(days, today=TODAY, window_days=10) == 10.0

    def test_rate_is_clamped(self):
        # Completions outnumbering eligible days cannot push past 100.
        days = days_ago(0, 1, 2)
        rate = completion_rate(
            days, today=TODAY, window_days=7, created_on=TODAY - timedelta(days=2)
        )
        assert 0.0 <= rate <= 100.0

    @pytest.mark.parametrize("window", [0, -3])
    def test_non_positive_window_rejected(self, window):
        with pytest.raises(ValidationError):
            completion_rate(days_ago(0), today=TODAY, window_days=window)


class TestNormalization:
    def test_mixed_inputs(self):
        values = [
            datetime(2024, 5, 15, 8, 0, tzinfo=timezone.utc),
            date(2024, 5, 14),
            "2024-05-13T22:00:00Z",
            "2024-05-12",
        ]
        assert completed_days(values) == {
            date(2024, 5, 15),
            date(2024, 5, 14),
            date(2024, 5, 13),
            date(2024, 5, 12),
        }

    def test_unparseable_values_are_counted_and_skipped(self):
        days, skipped = normalize_days(["not-a-date", None, "", "2024-05-15T10:00:00+00:00"])
        assert days == {date(2024, 5, 15)}
        assert skipped == 3

    def test_naive_datetimes_are_utc(self):
        naive = datetime(2024, 5, 15, 23, 30)
        assert completed_days([naive]) == {date(2024, 5, 15)}

    def test_user_timezone_moves_day_boundary(self):
        instant = datetime(2024, 5, 15, 23, 30, tzinfo=timezone.utc)
        assert completed_days([instant], ZoneInfo("Asia/Tokyo")) == {date(2024, 5, 16)}
        assert completed_days([instant], ZoneInfo("America/New_York")) == {date(2024, 5, 15)}

    def test_date_strings_keep_their_day_west_of_utc(self):
        days, skipped = normalize_days(["2024-05-15"], ZoneInfo("America/New_York"))
        assert days == {date(2024, 5, 15)}
        assert skipped == 0

    def test_same_day_timestamps_collapse(self):
        values = ["2024-05-15T01:00:00Z", "2024-05-15T20:00:00Z"]
        assert completed_days(values) == {date(2024, 5, 15)}


class TestSummarize:
    def test_summary_fields(self):
        values = [datetime.combine(day, datetime.min.time(), timezone.utc) for day in streak_days(4)]
        summary = summarize(values, today=TODAY, window_days=7)
        assert summary.current == 4
        assert summary.best == 4
        assert summary.total_completions == 4
        assert summary.completion_rate == pytest.approx(57.14, abs=0.01)
        assert summary.to_dict()["current_streak"] == 4

    def test_idempotent(self):
        values = ["2024-05-15T08:00:00Z", "2024-05-14T08:00:00Z", "2024-05-10T08:00:00Z"]
        first = summarize(values, today=TODAY)
        second = summarize(values, today=TODAY)
        assert first == second

    def test_rejects_bad_window(self):
        with pytest.raises(ValidationError):
            summarize([], today=TODAY, window_days=0)


class TestStreakStart:
    def test_run_ending_today(self):
        assert streak_start(streak_days(3), today=TODAY) == TODAY - timedelta(days=2)

    def test_run_ending_yesterday(self):
        assert streak_start(days_ago(1, 2), today=TODAY) == TODAY - timedelta(days=2)

    def test_rebuilt_run_starts_later(self):
        old_run = set(streak_days(7, ending=TODAY - timedelta(days=20)))
        new_run = set(streak_days(7))
        assert streak_start(old_run | new_run, today=TODAY) == TODAY - timedelta(days=6)


class TestMilestones:
    def test_fires_only_on_exact_value(self):
        fired = [streak for streak in (5, 6, 7, 8) if milestone_for(streak) is not None]
        assert fired == [7]

    @pytest.mark.parametrize("value", MILESTONES)
    def test_every_milestone(self, value):
        assert milestone_for(value) == value

    @pytest.mark.parametrize("value", [0, 1, 13, 15, 99, 101])
    def test_non_milestones(self, value):
        assert milestone_for(value) is None
