"""Unit tests for report generation - pure functions, no mocks needed."""

from datetime import date, datetime, timedelta, timezone

import pytest

from lifetracker.core.models import Activity, MealEntry, WeightEntry
from lifetracker.core.reports import (
    compare_weeks,
    day_bounds,
    generate_nutrition_summary,
    percentage_change,
    summarize_activities,
    summarize_weights,
    weekly_windows,
)


def at(day: int, hour: int = 12) -> datetime:
    return datetime(2023, 6, day, hour, tzinfo=timezone.utc)


def activity(kind: str, duration: int, calories: int, when: datetime) -> Activity:
    return Activity(
        id=f"{kind}-{when.isoformat()}", user_id="u1", type=kind, duration=duration,
        calories=calories, date=when, created_at=when, updated_at=when,
    )


class TestSummarizeActivities:
    """Tests for summarize_activities."""

    def test_empty(self):
        """No activities gives zero totals and zero averages."""
        summary = summarize_activities([])

        assert summary.total_duration == 0
        assert summary.active_days == 0
        assert summary.average_duration_per_day == 0
        assert summary.average_calories_per_day == 0
        assert summary.activity_count_by_type == {}

    def test_totals_and_breakdowns(self):
        """Totals and per-type breakdowns are summed."""
        summary = summarize_activities([
            activity("running", 30, 300, at(1)),
            activity("running", 20, 200, at(2)),
            activity("yoga", 60, 150, at(2, 18)),
        ])

        assert summary.total_duration == 110
        assert summary.total_calories == 650
        assert summary.activities_count == 3
        assert summary.activity_count_by_type == {"running": 2, "yoga": 1}
        assert summary.calories_by_type == {"running": 500, "yoga": 150}
        assert summary.duration_by_type == {"running": 50, "yoga": 60}

    def test_averages_per_active_day(self):
        """Averages divide by distinct UTC days with activity."""
        summary = summarize_activities([
            activity("running", 30, 300, at(1, 1)),
            activity("running", 30, 300, at(1, 23)),
            activity("cycling", 60, 600, at(3)),
        ])

        assert summary.active_days == 2
        assert summary.average_duration_per_day == 60
        assert summary.average_calories_per_day == 600


class TestPercentageChange:
    """Tests for percentage_change."""

    def test_from_zero_to_positive(self):
        """Growth from a zero baseline reports 100."""
        assert percentage_change(0, 5) == 100

    def test_zero_to_zero(self):
        """No change from zero reports 0."""
        assert percentage_change(0, 0) == 0

    def test_decrease(self):
        """Halving reports -50."""
        assert percentage_change(10, 5) == -50

    def test_increase(self):
        """Doubling reports 100."""
        assert percentage_change(10, 20) == 100


class TestWeeklyWindows:
    """Tests for weekly_windows and compare_weeks."""

    def test_windows_are_adjacent(self):
        """Previous window ends just before the current one starts."""
        now = datetime(2023, 6, 15, tzinfo=timezone.utc)
        (current_start, current_end), (previous_start, previous_end) = weekly_windows(now)

        assert current_end == now
        assert current_start == now - timedelta(days=7)
        assert previous_start == now - timedelta(days=14)
        assert previous_end == current_start - timedelta(milliseconds=1)

    def test_compare_weeks(self):
        """Changes are computed per metric."""
        current = summarize_activities([activity("running", 30, 300, at(10))])
        previous = summarize_activities([
            activity("running", 60, 300, at(2)),
            activity("running", 60, 300, at(3)),
        ])
        trends = compare_weeks(current, previous)

        assert trends.changes.duration_change == -75
        assert trends.changes.calories_change == -50
        assert trends.changes.activity_count_change == -50

    def test_compare_against_empty_week(self):
        """A first active week reports 100 for every metric."""
        trends = compare_weeks(
            summarize_activities([activity("running", 30, 300, at(10))]),
            summarize_activities([]),
        )
        assert trends.changes.duration_change == 100
        assert trends.changes.activity_count_change == 100


class TestSummarizeWeights:
    """Tests for summarize_weights."""

    def test_empty(self):
        """No entries gives a zeroed trend."""
        trend = summarize_weights([])
        assert trend.count == 0
        assert trend.change == 0
        assert trend.latest is None

    def test_change_uses_date_order(self):
        """First and latest come from dates, not input order."""
        entries = [
            WeightEntry(id="w2", user_id="u1", weight=79.5, date=at(10), created_at=at(10), updated_at=at(10)),
            WeightEntry(id="w1", user_id="u1", weight=81.0, date=at(1), created_at=at(1), updated_at=at(1)),
            WeightEntry(id="w3", user_id="u1", weight=80.0, date=at(5), created_at=at(5), updated_at=at(5)),
        ]
        trend = summarize_weights(entries)

        assert trend.first == 81.0
        assert trend.latest == 79.5
        assert trend.change == -1.5
        assert trend.minimum == 79.5
        assert trend.maximum == 81.0
        assert trend.average == pytest.approx(80.17, abs=0.01)


class TestNutritionSummary:
    """Tests for day_bounds and generate_nutrition_summary."""

    def test_day_bounds(self):
        """Bounds cover the whole UTC day."""
        start, end = day_bounds(date(2023, 6, 1))
        assert start == datetime(2023, 6, 1, tzinfo=timezone.utc)
        assert end == datetime(2023, 6, 1, 23, 59, 59, 999000, tzinfo=timezone.utc)

    def test_summary_ignores_other_days(self):
        """Only meals on the requested day are counted."""
        meals = [
            MealEntry(
                id="m1", user_id="u1", food_name="Oats", meal_type="breakfast", calories=300,
                protein=10, carbs=50, fat=5, date=at(1, 8), created_at=at(1), updated_at=at(1),
            ),
            MealEntry(
                id="m2", user_id="u1", food_name="Pasta", meal_type="dinner", calories=700,
                date=at(2, 19), created_at=at(2), updated_at=at(2),
            ),
        ]
        summary = generate_nutrition_summary(meals, date(2023, 6, 1))

        assert summary.meal_count == 1
        assert summary.total_calories == 300
        assert summary.total_protein == 10
        assert summary.calories_by_meal_type["breakfast"] == 300
        assert summary.calories_by_meal_type["dinner"] == 0
