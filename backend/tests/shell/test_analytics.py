"""Tests for the analytics service over in-memory data."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from lifetracker.core.errors import ServiceUnavailable
from lifetracker.core.models import ActivityCreate, JournalCreate
from lifetracker.shell.config import Settings
from lifetracker.shell.wiring import build_services


NOW = datetime(2023, 6, 15, 12, tzinfo=timezone.utc)


async def log(services, days_ago: float, duration: int, kind: str = "running", owner: str = "u1"):
    return await services.activities.create(
        owner,
        ActivityCreate(type=kind, duration=duration, calories=duration * 10, date=NOW - timedelta(days=days_ago)),
    )


class TestFitnessSummary:
    """Tests for fitness_summary."""

    async def test_only_range_and_owner(self, services):
        """Activities outside the range or owned by others are ignored."""
        await log(services, 1, 30)
        await log(services, 40, 60)
        await log(services, 1, 90, owner="u2")

        summary = await services.analytics.fitness_summary("u1", NOW - timedelta(days=30), NOW)

        assert summary.activities_count == 1
        assert summary.total_duration == 30

    async def test_empty(self, services):
        """No activities gives a zeroed summary."""
        summary = await services.analytics.fitness_summary("u1", NOW - timedelta(days=30), NOW)
        assert summary.active_days == 0
        assert summary.average_calories_per_day == 0


class TestWeeklyTrends:
    """Tests for weekly_trends."""

    async def test_week_over_week(self, services):
        """Current and previous weeks are compared."""
        await log(services, 1, 30)
        await log(services, 2, 30)
        await log(services, 9, 30)

        trends = await services.analytics.weekly_trends("u1", now=NOW)

        assert trends.current.activities_count == 2
        assert trends.previous.activities_count == 1
        assert trends.changes.activity_count_change == 100
        assert trends.changes.duration_change == 100

    async def test_first_week(self, services):
        """An empty previous week reports 100 growth."""
        await log(services, 1, 30)
        trends = await services.analytics.weekly_trends("u1", now=NOW)
        assert trends.changes.calories_change == 100

    async def test_quiet_weeks(self, services):
        """Two empty weeks report no change."""
        trends = await services.analytics.weekly_trends("u1", now=NOW)
        assert trends.changes.duration_change == 0


class TestJournalInsights:
    """Tests for the journal insight methods."""

    async def test_sentiment_trends(self, services):
        """Trends reflect stored sentiment scores."""
        await services.journals.create("u1", JournalCreate(content="A great happy day", date=NOW))
        trends = await services.analytics.sentiment_trends("u1", NOW - timedelta(days=1), NOW)

        assert trends.average_sentiment == 1.0
        assert trends.top_emotions[0].emotion == "joy"

    async def test_topic_analysis_falls_back_to_tags(self, services):
        """Key phrase failure falls back to tag topics."""
        services.analytics.text_analytics.extract_key_phrases = AsyncMock(side_effect=RuntimeError("down"))
        await services.journals.create("u1", JournalCreate(content="Leg day", tags=["gym"], date=NOW))

        analysis = await services.analytics.topic_analysis("u1", NOW - timedelta(days=1), NOW)
        assert analysis.top_topics[0].topic == "gym"

    async def test_mood_insights_without_entries(self, services):
        """No entries gives the not-enough-data result."""
        insights = await services.analytics.mood_insights("u1")
        assert insights.mood_summary == "Not enough data to generate insights."

    async def test_insights_disabled(self, store):
        """Insights raise ServiceUnavailable when switched off."""
        services = build_services(Settings(advanced_insights_enabled=False, mcp_enabled=False), store)
        with pytest.raises(ServiceUnavailable):
            await services.analytics.mood_insights("u1")
