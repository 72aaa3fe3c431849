"""MCP Server - Tool definitions for assistant integration.

Exposes the LifeTracker services as MCP tools. Identity comes from the same
auth middleware as the REST API, carried in the current_owner_id context var.
"""

import logging
from datetime import date, timedelta

from mcp.server.fastmcp import FastMCP
from mcp.server.transport_security import TransportSecuritySettings

from ..core.models import (
    ActivityCreate,
    GoalCreate,
    GoalUpdate,
    JournalCreate,
    MealCreate,
    WeightCreate,
    utcnow,
)
from .auth import current_owner_id
from .wiring import Services


logger = logging.getLogger(__name__)

INSTRUCTIONS = """LifeTracker - Personal fitness, nutrition and journaling assistant.

Use these tools to log activities, meals and weight, keep a journal, track
fitness goals, and summarize progress.

When logging, confirm the stored values back to the user.
Use get_weekly_trends or get_fitness_summary when asked how training is going."""


def get_owner_id() -> str:
    """Get current authenticated owner ID.

    Raises:
        RuntimeError: If no user is authenticated
    """
    owner_id = current_owner_id.get()
    if owner_id is None:
        raise RuntimeError("No authenticated user. Ensure a bearer token is provided.")
    return owner_id


def build_mcp(services: Services) -> FastMCP:
    """Create the MCP server bound to a service graph.

    One instance per app: the streamable HTTP session manager can only run once.
    """
    settings = services.settings

    # Configure transport security for Cloud Run deployment
    transport_security = TransportSecuritySettings(
        enable_dns_rebinding_protection=True,
        allowed_hosts=list(settings.mcp_allowed_hosts),
    )

    mcp = FastMCP(
        "lifetracker",
        instructions=INSTRUCTIONS,
        stateless_http=True,
        transport_security=transport_security,
    )

    # ==================== Activity Tools ====================

    @mcp.tool()
    async def log_activity(
        activity_type: str,
        duration: int,
        calories: int,
        date_str: str | None = None,
        notes: str | None = None,
    ) -> dict:
        """Log a fitness activity.

        Args:
            activity_type: Kind of activity (e.g., "running", "cycling")
            duration: Duration in minutes
            calories: Calories burned
            date_str: When it happened, ISO-8601 (defaults to now)
            notes: Optional details

        Returns:
            The stored activity
        """
        owner_id = get_owner_id()
        activity = await services.activities.create(
            owner_id,
            ActivityCreate(
                type=activity_type, duration=duration, calories=calories, date=date_str, notes=notes
            ),
        )
        return activity.to_document()

    @mcp.tool()
    async def list_recent_activities(limit: int = 10) -> dict:
        """List the most recent activities, newest first.

        Args:
            limit: Number of activities to return (1-100)
        """
        owner_id = get_owner_id()
        page = await services.activities.list(owner_id, limit=max(1, min(limit, 100)))
        return page.to_document()

    @mcp.tool()
    async def get_fitness_summary(days: int = 30) -> dict:
        """Summarize activities over the last N days.

        Args:
            days: Length of the period ending now

        Returns:
            Totals, per-type breakdowns and per-day averages
        """
        owner_id = get_owner_id()
        end = utcnow()
        summary = await services.analytics.fitness_summary(owner_id, end - timedelta(days=days), end)
        return summary.to_document()

    @mcp.tool()
    async def get_weekly_trends() -> dict:
        """Compare this week's activity with the previous week.

        Returns:
            Both weekly summaries and percentage changes
        """
        owner_id = get_owner_id()
        trends = await services.analytics.weekly_trends(owner_id)
        return trends.to_document()

    # ==================== Journal Tools ====================

    @mcp.tool()
    async def write_journal_entry(
        content: str,
        tags: list[str] | None = None,
        mood: str | None = None,
    ) -> dict:
        """Write a journal entry. Sentiment is scored automatically.

        Args:
            content: Entry text
            tags: Optional topic tags
            mood: Optional self-reported mood
        """
        owner_id = get_owner_id()
        entry = await services.journals.create(
            owner_id, JournalCreate(content=content, tags=tags or [], mood=mood)
        )
        return entry.to_document()

    @mcp.tool()
    async def search_journal(query: str, limit: int = 10) -> dict:
        """Search journal entries by text.

        Args:
            query: Words to look for
            limit: Maximum results (1-100)

        Returns:
            Matching entries, total count and facets
        """
        owner_id = get_owner_id()
        result = await services.journals.search(owner_id, query, limit=max(1, min(limit, 100)))
        return result.to_document()

    # ==================== Goal Tools ====================

    @mcp.tool()
    async def set_goal(
        title: str,
        target_date: str,
        goal_type: str | None = None,
        notes: str | None = None,
    ) -> dict:
        """Create a fitness goal.

        Args:
            title: What the goal is (e.g., "Run 10k")
            target_date: Deadline, ISO-8601
            goal_type: Optional category
            notes: Optional details
        """
        owner_id = get_owner_id()
        goal = await services.goals.create(
            owner_id, GoalCreate(title=title, target_date=target_date, type=goal_type, notes=notes)
        )
        return goal.to_document()

    @mcp.tool()
    async def update_goal_progress(goal_id: str, progress: int, achieved: bool | None = None) -> dict:
        """Update progress on a goal.

        Args:
            goal_id: The ID of the goal
            progress: Percentage complete (0-100)
            achieved: Mark the goal achieved or not; left unchanged when omitted
        """
        owner_id = get_owner_id()
        changes: dict = {"progress": progress}
        if achieved is not None:
            changes["achieved"] = achieved

        goal = await services.goals.update(goal_id, owner_id, GoalUpdate(**changes))
        if goal is None:
            return {"error": "Goal not found."}
        return goal.to_document()

    # ==================== Nutrition & Weight Tools ====================

    @mcp.tool()
    async def log_weight(weight: float, unit: str = "kg", notes: str | None = None) -> dict:
        """Record a body weight measurement taken now.

        Args:
            weight: Measured weight
            unit: "kg" or "lbs"
            notes: Optional details
        """
        owner_id = get_owner_id()
        entry = await services.weights.create(owner_id, WeightCreate(weight=weight, unit=unit, notes=notes))
        return entry.to_document()

    @mcp.tool()
    async def log_meal(
        food_name: str,
        meal_type: str,
        protein: float = 0,
        carbs: float = 0,
        fat: float = 0,
        calories: int | None = None,
        notes: str | None = None,
    ) -> dict:
        """Log a food eaten as part of a meal.

        Args:
            food_name: Name of the food (e.g., "Scrambled eggs")
            meal_type: breakfast, lunch, dinner or snack
            protein: Protein in grams
            carbs: Carbohydrates in grams
            fat: Fat in grams
            calories: Total calories; computed from macros when omitted
            notes: Optional details about quantity/preparation

        Returns:
            The stored meal and today's nutrition summary
        """
        owner_id = get_owner_id()
        meal = await services.meals.create(
            owner_id,
            MealCreate(
                food_name=food_name,
                meal_type=meal_type,
                calories=calories,
                protein=protein,
                carbs=carbs,
                fat=fat,
                notes=notes,
            ),
        )
        summary = await services.meals.daily_summary(owner_id, meal.date.date())
        return {"meal": meal.to_document(), "daily_summary": summary.to_document()}

    @mcp.tool()
    async def get_daily_nutrition(date_str: str | None = None) -> dict:
        """Get one day's meals and nutrition totals.

        Args:
            date_str: Date in YYYY-MM-DD format (defaults to today)
        """
        owner_id = get_owner_id()
        try:
            day = date.fromisoformat(date_str) if date_str else utcnow().date()
        except ValueError:
            return {"error": "Invalid date format. Use YYYY-MM-DD."}

        summary = await services.meals.daily_summary(owner_id, day)
        return summary.to_document()

    logger.debug("MCP server built with DNS rebinding protection for %s", settings.mcp_allowed_hosts)
    return mcp
