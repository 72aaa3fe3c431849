"""Analytics - Read-only summaries over activities and journal entries.

Fetches through the resource services and reduces with the pure functions in
core.reports and core.insights. Nothing here is persisted.
"""

import asyncio
import logging
from datetime import datetime

from ..core import insights
from ..core.errors import ServiceUnavailable
from ..core.models import (
    ActivityFilters,
    FitnessSummary,
    JournalEntry,
    JournalFilters,
    MoodInsights,
    SentimentTrends,
    TopicAnalysis,
    WeeklyTrends,
    utcnow,
)
from ..core.reports import compare_weeks, summarize_activities, weekly_windows
from .collaborators import TextAnalytics
from .services import ActivityService, JournalService


logger = logging.getLogger(__name__)

DEFAULT_MOOD_ENTRIES = 10


class AnalyticsService:
    """Fitness and journal insight aggregation."""

    def __init__(
        self,
        activities: ActivityService,
        journals: JournalService,
        text_analytics: TextAnalytics,
        advanced_insights_enabled: bool = True,
    ) -> None:
        self.activities = activities
        self.journals = journals
        self.text_analytics = text_analytics
        self.advanced_insights_enabled = advanced_insights_enabled

    # ==================== Fitness ====================

    async def fitness_summary(
        self, owner_id: str, start: datetime | None = None, end: datetime | None = None
    ) -> FitnessSummary:
        """Summarize the owner's activities between start and end (inclusive)."""
        activities = await self.activities.list_all(
            owner_id, ActivityFilters(start_date=start, end_date=end)
        )
        logger.debug("Summarizing %d activities for user %s", len(activities), owner_id[:8])
        return summarize_activities(activities)

    async def weekly_trends(self, owner_id: str, now: datetime | None = None) -> WeeklyTrends:
        """Compare the last 7 days with the 7 days before them."""
        (current_start, current_end), (previous_start, previous_end) = weekly_windows(now or utcnow())
        current, previous = await asyncio.gather(
            self.fitness_summary(owner_id, current_start, current_end),
            self.fitness_summary(owner_id, previous_start, previous_end),
        )
        return compare_weeks(current, previous)

    # ==================== Journal insights ====================

    def _require_insights(self) -> None:
        if not self.advanced_insights_enabled:
            raise ServiceUnavailable("Advanced insights are not enabled")

    async def _entries(
        self, owner_id: str, start: datetime | None, end: datetime | None
    ) -> list[JournalEntry]:
        return await self.journals.list_all(owner_id, JournalFilters(start_date=start, end_date=end))

    async def sentiment_trends(
        self, owner_id: str, start: datetime | None = None, end: datetime | None = None
    ) -> SentimentTrends:
        self._require_insights()
        return insights.sentiment_trends(await self._entries(owner_id, start, end))

    async def topic_analysis(
        self, owner_id: str, start: datetime | None = None, end: datetime | None = None
    ) -> TopicAnalysis:
        """Topics from key phrases, or from tags when extraction fails."""
        self._require_insights()
        entries = await self._entries(owner_id, start, end)
        if not entries:
            return insights.topic_analysis([], None)

        key_phrases: list[str] | None
        try:
            extracted = await asyncio.gather(
                *(self.text_analytics.extract_key_phrases(entry.content) for entry in entries)
            )
            key_phrases = [phrase for phrases in extracted for phrase in phrases]
        except Exception as e:
            logger.warning("Key phrase extraction failed, using tags: %s", str(e))
            key_phrases = None

        return insights.topic_analysis(entries, key_phrases)

    async def mood_insights(self, owner_id: str, count: int = DEFAULT_MOOD_ENTRIES) -> MoodInsights:
        """Insights over the owner's most recent entries."""
        self._require_insights()
        return insights.mood_insights(await self.journals.recent(owner_id, count))
