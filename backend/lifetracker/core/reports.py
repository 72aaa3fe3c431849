"""Report Generation - Pure functions for generating reports.

All functions are pure: same input always produces same output, no side effects.
"""

from collections import defaultdict
from datetime import date, datetime, timedelta, timezone

from .macros import calculate_daily_totals, calories_by_meal_type
from .models import (
    Activity,
    FitnessSummary,
    MealEntry,
    NutritionSummary,
    WeeklyChanges,
    WeeklyTrends,
    WeightEntry,
    WeightTrend,
    ensure_utc,
)


def summarize_activities(activities: list[Activity]) -> FitnessSummary:
    """Reduce activities to totals, per-type breakdowns and daily averages.

    Averages are per active day (distinct UTC dates with at least one
    activity) and are 0 when there are no active days.

    Args:
        activities: Activities to summarize (any order)

    Returns:
        FitnessSummary for the given activities
    """
    total_duration = sum(a.duration for a in activities)
    total_calories = sum(a.calories for a in activities)
    active_days = len({ensure_utc(a.date).date() for a in activities})

    count_by_type: dict[str, int] = defaultdict(int)
    calories_by_type: dict[str, int] = defaultdict(int)
    duration_by_type: dict[str, int] = defaultdict(int)
    for activity in activities:
        count_by_type[activity.type] += 1
        calories_by_type[activity.type] += activity.calories
        duration_by_type[activity.type] += activity.duration

    return FitnessSummary(
        total_duration=total_duration,
        total_calories=total_calories,
        average_duration_per_day=total_duration / active_days if active_days > 0 else 0,
        average_calories_per_day=total_calories / active_days if active_days > 0 else 0,
        activity_count_by_type=dict(count_by_type),
        calories_by_type=dict(calories_by_type),
        duration_by_type=dict(duration_by_type),
        active_days=active_days,
        activities_count=len(activities),
    )


def percentage_change(previous: float, current: float) -> float:
    """Percentage change from previous to current.

    A zero baseline reports 100 when the new value is positive, else 0.
    """
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return (current - previous) / previous * 100


def weekly_windows(now: datetime) -> tuple[tuple[datetime, datetime], tuple[datetime, datetime]]:
    """Two adjacent 7-day windows ending at ``now``.

    Returns:
        ((current_start, current_end), (previous_start, previous_end)); both
        bounds inclusive, previous_end is one millisecond before current_start
    """
    now = ensure_utc(now)
    current_start = now - timedelta(days=7)
    previous_end = current_start - timedelta(milliseconds=1)
    previous_start = current_start - timedelta(days=7)
    return (current_start, now), (previous_start, previous_end)


def compare_weeks(current: FitnessSummary, previous: FitnessSummary) -> WeeklyTrends:
    """Week-over-week comparison of two summaries."""
    return WeeklyTrends(
        current=current,
        previous=previous,
        changes=WeeklyChanges(
            duration_change=percentage_change(previous.total_duration, current.total_duration),
            calories_change=percentage_change(previous.total_calories, current.total_calories),
            activity_count_change=percentage_change(previous.activities_count, current.activities_count),
        ),
    )


def summarize_weights(entries: list[WeightEntry]) -> WeightTrend:
    """Weight change between the earliest and latest entries.

    Args:
        entries: Weight entries in any order

    Returns:
        WeightTrend; count 0 and zeroed values when there are no entries
    """
    if not entries:
        return WeightTrend(count=0)

    ordered = sorted(entries, key=lambda e: ensure_utc(e.date))
    weights = [e.weight for e in ordered]

    return WeightTrend(
        count=len(ordered),
        first=ordered[0].weight,
        latest=ordered[-1].weight,
        change=round(ordered[-1].weight - ordered[0].weight, 2),
        minimum=min(weights),
        maximum=max(weights),
        average=round(sum(weights) / len(weights), 2),
        unit=ordered[-1].unit,
    )


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """First and last millisecond of a UTC day."""
    start = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    return start, start + timedelta(days=1) - timedelta(milliseconds=1)


def generate_nutrition_summary(meals: list[MealEntry], day: date) -> NutritionSummary:
    """Summarize one day of meals.

    Args:
        meals: Meals to summarize; meals on other days are ignored
        day: The UTC day being summarized

    Returns:
        NutritionSummary with totals and meals ordered by time eaten
    """
    day_meals = sorted(
        (m for m in meals if ensure_utc(m.date).date() == day),
        key=lambda m: ensure_utc(m.date),
    )
    total_cal, total_pro, total_carb, total_fat = calculate_daily_totals(day_meals)

    return NutritionSummary(
        date=day,
        total_calories=total_cal,
        total_protein=round(total_pro, 1),
        total_carbs=round(total_carb, 1),
        total_fat=round(total_fat, 1),
        meal_count=len(day_meals),
        calories_by_meal_type=calories_by_meal_type(day_meals),
        meals=day_meals,
    )
