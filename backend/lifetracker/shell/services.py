"""Resource Services - CRUD, filtering and pagination per entity type.

Every service builds QuerySpecs against the DocumentStore and maps stored
documents to core models. Not-found (including records owned by someone
else) is returned as None / False; only unexpected failures raise.
"""

import asyncio
import logging
import uuid
from datetime import date, datetime
from typing import Any, Generic, TypeVar

from ..core.errors import NotFound, ServiceUnavailable
from ..core.macros import calculate_calories_from_macros
from ..core.models import (
    Activity,
    ActivityCreate,
    ActivityFilters,
    ActivityUpdate,
    Attachment,
    CamelModel,
    DateRangeFilters,
    FacetValue,
    FitnessGoal,
    GoalCreate,
    GoalFilters,
    GoalUpdate,
    JournalCreate,
    JournalEntry,
    JournalFilters,
    JournalUpdate,
    MealCreate,
    MealEntry,
    MealFilters,
    MealUpdate,
    NutritionSummary,
    Page,
    Preferences,
    Profile,
    ProfileCreate,
    ProfileUpdate,
    SearchResult,
    WeightCreate,
    WeightEntry,
    WeightTrend,
    WeightUpdate,
    format_timestamp,
    next_timestamp,
    utcnow,
)
from ..core.query import (
    DEFAULT_LIMIT,
    DEFAULT_OFFSET,
    UNBOUNDED_LIMIT,
    QuerySpec,
    next_cursor,
    owner_query,
    resolve_offset,
)
from ..core.reports import day_bounds, generate_nutrition_summary, summarize_weights
from ..core.text_analysis import NEUTRAL_SCORE, clamp_score
from .collaborators import BlobStore, SearchIndex, SearchRequest, TextAnalytics
from .store import DocumentStore


logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=CamelModel)

# Fields an update can never change
PRESERVED_FIELDS = ("id", "createdAt")


def new_id() -> str:
    return str(uuid.uuid4())


class DocumentService(Generic[ModelT]):
    """Lookup, merge-update and delete shared by every service.

    Subclasses set ``container_name``, ``model`` and ``owner_field`` (the
    partition key holding the owner id).
    """

    container_name: str
    model: type[ModelT]
    owner_field: str = "userId"

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    @property
    def kind(self) -> str:
        return self.model.__name__

    async def _insert(self, item: ModelT) -> ModelT:
        container = await self.store.container(self.container_name)
        await container.create(item.to_document())
        logger.info("Created %s %s for user %s", self.kind, item.id, self._owner_of(item)[:8])
        return item

    def _owner_of(self, item: ModelT) -> str:
        return item.to_document()[self.owner_field]

    async def _get(self, item_id: str, owner_id: str) -> ModelT | None:
        container = await self.store.container(self.container_name)
        spec = owner_query(self.owner_field, owner_id)
        if self.owner_field != "id":
            spec.where("id", "==", "@id", item_id)
        elif item_id != owner_id:
            return None

        logger.debug("Fetching %s %s for user %s", self.kind, item_id, owner_id[:8])
        documents = await container.query(spec)
        if not documents:
            return None
        return self.model.model_validate(documents[0])

    async def _prepare_update(self, existing: ModelT, changes: dict[str, Any]) -> dict[str, Any]:
        """Hook for derived fields. Receives and returns document-keyed changes."""
        return changes

    async def _update(self, item_id: str, owner_id: str, update: CamelModel) -> ModelT | None:
        existing = await self._get(item_id, owner_id)
        if existing is None:
            return None

        stored = existing.to_document()
        changes = await self._prepare_update(existing, update.set_fields())

        merged = {**stored, **changes}
        for key in (*PRESERVED_FIELDS, self.owner_field):
            merged[key] = stored[key]
        merged["updatedAt"] = format_timestamp(next_timestamp(existing.updated_at))

        item = self.model.model_validate(merged)
        container = await self.store.container(self.container_name)
        await container.upsert(item.to_document())

        logger.info("Updated %s %s for user %s", self.kind, item_id, owner_id[:8])
        return item

    async def _delete(self, item_id: str, owner_id: str) -> bool:
        existing = await self._get(item_id, owner_id)
        if existing is None:
            return False

        container = await self.store.container(self.container_name)
        try:
            await container.item(item_id, owner_id).delete()
        except NotFound:
            # Removed by a concurrent request between lookup and delete
            return False

        logger.info("Deleted %s %s for user %s", self.kind, item_id, owner_id[:8])
        return True


class ResourceService(DocumentService[ModelT]):
    """Per-user resource with list, get, update and delete.

    Subclasses set ``sort_field`` and may override ``build_query`` to add
    entity filters.
    """

    sort_field: str = "date"

    def build_query(self, owner_id: str, filters: Any = None) -> QuerySpec:
        return owner_query(self.owner_field, owner_id)

    async def get_by_id(self, item_id: str, owner_id: str) -> ModelT | None:
        return await self._get(item_id, owner_id)

    # Defined before list() so the builtin is still in scope for the annotation
    async def list_all(self, owner_id: str, filters: Any = None) -> list[ModelT]:
        """Up to UNBOUNDED_LIMIT records, for aggregation."""
        page = await self.list(owner_id, filters, limit=UNBOUNDED_LIMIT, offset=0)
        return page.items

    async def list(
        self,
        owner_id: str,
        filters: Any = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> Page[ModelT]:
        """List the owner's records, newest first.

        Args:
            owner_id: Owner whose records are listed
            filters: Entity-specific filter model
            limit: Page size (default 50)
            offset: Records to skip (default 0)

        Returns:
            Page with the items and the total matching count
        """
        limit = DEFAULT_LIMIT if limit is None else limit
        offset = DEFAULT_OFFSET if offset is None else offset

        spec = self.build_query(owner_id, filters)
        container = await self.store.container(self.container_name)

        logger.debug("Listing %s for user %s: %s", self.container_name, owner_id[:8], spec.text)
        counted, documents = await asyncio.gather(
            container.query(spec.counting()),
            container.query(spec.page(self.sort_field, limit, offset)),
        )

        return Page[self.model](
            items=[self.model.model_validate(d) for d in documents],
            total=counted[0] if counted else 0,
            limit=limit,
            offset=offset,
        )

    async def update(self, item_id: str, owner_id: str, changes: CamelModel) -> ModelT | None:
        return await self._update(item_id, owner_id, changes)

    async def delete(self, item_id: str, owner_id: str) -> bool:
        return await self._delete(item_id, owner_id)


def _date_range(spec: QuerySpec, start: datetime | None, end: datetime | None) -> QuerySpec:
    if start is not None:
        spec.where("date", ">=", "@startDate", start)
    if end is not None:
        spec.where("date", "<=", "@endDate", end)
    return spec


# ==================== Activities ====================


class ActivityService(ResourceService[Activity]):
    container_name = "activities"
    model = Activity

    def build_query(self, owner_id: str, filters: ActivityFilters | None = None) -> QuerySpec:
        spec = owner_query(self.owner_field, owner_id)
        if filters is None:
            return spec
        if filters.type:
            spec.where("type", "==", "@type", filters.type)
        return _date_range(spec, filters.start_date, filters.end_date)

    async def create(self, owner_id: str, payload: ActivityCreate) -> Activity:
        now = utcnow()
        data = payload.model_dump(exclude={"date"})
        activity = Activity(
            id=new_id(),
            user_id=owner_id,
            date=payload.date or now,
            created_at=now,
            updated_at=now,
            **data,
        )
        return await self._insert(activity)


# ==================== Goals ====================


class GoalService(ResourceService[FitnessGoal]):
    container_name = "goals"
    model = FitnessGoal
    sort_field = "createdAt"

    def build_query(self, owner_id: str, filters: GoalFilters | None = None) -> QuerySpec:
        spec = owner_query(self.owner_field, owner_id)
        if filters is None:
            return spec
        if filters.type:
            spec.where("type", "==", "@type", filters.type)
        if filters.status:
            spec.where("achieved", "==", "@achieved", filters.status == "achieved")
        return spec

    async def create(self, owner_id: str, payload: GoalCreate) -> FitnessGoal:
        now = utcnow()
        goal = FitnessGoal(
            id=new_id(),
            user_id=owner_id,
            created_at=now,
            updated_at=now,
            **payload.model_dump(),
        )
        return await self._insert(goal)


# ==================== Journals ====================


class JournalService(ResourceService[JournalEntry]):
    """Journal entries with sentiment scoring, search and attachments."""

    container_name = "journals"
    model = JournalEntry

    def __init__(
        self,
        store: DocumentStore,
        text_analytics: TextAnalytics,
        search_index: SearchIndex,
        attachments: BlobStore | None,
        search_enabled: bool = True,
    ) -> None:
        super().__init__(store)
        self.text_analytics = text_analytics
        self.search_index = search_index
        self.attachments = attachments
        self.search_enabled = search_enabled

    def build_query(self, owner_id: str, filters: JournalFilters | None = None) -> QuerySpec:
        spec = owner_query(self.owner_field, owner_id)
        if filters is None:
            return spec
        _date_range(spec, filters.start_date, filters.end_date)
        if filters.min_sentiment is not None:
            spec.where("sentimentScore", ">=", "@minSentiment", filters.min_sentiment)
        if filters.max_sentiment is not None:
            spec.where("sentimentScore", "<=", "@maxSentiment", filters.max_sentiment)
        if filters.tags:
            spec.where("tags", "array_contains_any", "@tags", filters.tags)
        if filters.mood:
            spec.where("mood", "==", "@mood", filters.mood)
        return spec

    async def score(self, text: str) -> float:
        """Sentiment of text in [0, 1]; neutral when analytics fails."""
        try:
            return clamp_score(await self.text_analytics.analyze_sentiment(text))
        except Exception as e:
            logger.error("Sentiment analysis failed: %s", str(e))
            return NEUTRAL_SCORE

    async def _sync_index(self, entry: JournalEntry) -> None:
        if not self.search_enabled:
            return
        try:
            await self.search_index.index(entry.to_document())
        except Exception as e:
            logger.error("Failed to index journal entry %s: %s", entry.id, str(e))

    async def create(self, owner_id: str, payload: JournalCreate) -> JournalEntry:
        now = utcnow()
        entry = JournalEntry(
            id=new_id(),
            user_id=owner_id,
            date=payload.date or now,
            sentiment_score=await self.score(payload.content),
            created_at=now,
            updated_at=now,
            **payload.model_dump(exclude={"date"}),
        )
        entry = await self._insert(entry)
        await self._sync_index(entry)
        return entry

    async def _prepare_update(self, existing: JournalEntry, changes: dict[str, Any]) -> dict[str, Any]:
        content = changes.get("content")
        if content is not None and content != existing.content:
            changes["sentimentScore"] = await self.score(content)
        return changes

    async def update(self, item_id: str, owner_id: str, changes: JournalUpdate) -> JournalEntry | None:
        entry = await self._update(item_id, owner_id, changes)
        if entry is not None:
            await self._sync_index(entry)
        return entry

    async def delete(self, item_id: str, owner_id: str) -> bool:
        deleted = await self._delete(item_id, owner_id)
        if deleted and self.search_enabled:
            try:
                await self.search_index.remove(item_id)
            except Exception as e:
                logger.error("Failed to remove journal entry %s from index: %s", item_id, str(e))
        return deleted

    async def recent(self, owner_id: str, count: int) -> list[JournalEntry]:
        page = await self.list(owner_id, limit=count, offset=0)
        return page.items

    async def search(
        self,
        owner_id: str,
        text: str,
        filters: JournalFilters | None = None,
        limit: int | None = None,
        offset_or_cursor: int | str | None = None,
    ) -> SearchResult:
        """Full-text search over the owner's entries.

        Args:
            owner_id: Owner whose entries are searched
            text: Search terms; empty or "*" matches everything
            filters: Journal filters applied on top of the text match
            limit: Page size (default 50)
            offset_or_cursor: Numeric offset or a cursor from a previous result

        Returns:
            SearchResult with facets on tags and sentiment buckets

        Raises:
            ServiceUnavailable: Search is switched off
        """
        if not self.search_enabled:
            raise ServiceUnavailable("Journal search is not enabled")

        limit = DEFAULT_LIMIT if limit is None else limit
        offset = resolve_offset(offset_or_cursor)
        request = SearchRequest(filter=self.build_query(owner_id, filters), skip=offset, top=limit)

        logger.debug("Searching journals for user %s: %r", owner_id[:8], text)
        response = await self.search_index.search(text, request)
        results = [JournalEntry.model_validate(d) for d in response.documents]

        facets = {
            name: [FacetValue(**value) for value in values]
            for name, values in response.facets.items()
        }
        return SearchResult(
            results=results,
            count=response.count,
            next_cursor=next_cursor(offset, limit, len(results), response.count),
            facets=facets or None,
        )

    async def upload_attachment(
        self, owner_id: str, data: bytes, file_name: str, content_type: str
    ) -> Attachment:
        """Store an attachment file for a journal entry.

        Raises:
            ServiceUnavailable: No blob storage is configured
        """
        if self.attachments is None:
            raise ServiceUnavailable("File uploads are not configured")

        url = await self.attachments.upload(owner_id, data, content_type, file_name)
        logger.info("Uploaded attachment %s for user %s", file_name, owner_id[:8])
        return Attachment(
            id=new_id(),
            file_name=file_name,
            content_type=content_type,
            size=len(data),
            url=url,
        )


# ==================== Weight ====================


class WeightService(ResourceService[WeightEntry]):
    container_name = "weights"
    model = WeightEntry

    def build_query(self, owner_id: str, filters: DateRangeFilters | None = None) -> QuerySpec:
        spec = owner_query(self.owner_field, owner_id)
        if filters is None:
            return spec
        return _date_range(spec, filters.start_date, filters.end_date)

    async def create(self, owner_id: str, payload: WeightCreate) -> WeightEntry:
        now = utcnow()
        entry = WeightEntry(
            id=new_id(),
            user_id=owner_id,
            date=payload.date or now,
            created_at=now,
            updated_at=now,
            **payload.model_dump(exclude={"date"}),
        )
        return await self._insert(entry)

    async def trend(
        self, owner_id: str, start: datetime | None = None, end: datetime | None = None
    ) -> WeightTrend:
        entries = await self.list_all(owner_id, DateRangeFilters(start_date=start, end_date=end))
        return summarize_weights(entries)


# ==================== Meals ====================


class MealService(ResourceService[MealEntry]):
    container_name = "meals"
    model = MealEntry

    def build_query(self, owner_id: str, filters: MealFilters | None = None) -> QuerySpec:
        spec = owner_query(self.owner_field, owner_id)
        if filters is None:
            return spec
        if filters.meal_type:
            spec.where("mealType", "==", "@mealType", filters.meal_type)
        return _date_range(spec, filters.start_date, filters.end_date)

    async def create(self, owner_id: str, payload: MealCreate) -> MealEntry:
        now = utcnow()
        data = payload.model_dump(exclude={"date", "calories"})
        calories = payload.calories
        if calories is None:
            calories = calculate_calories_from_macros(payload.protein, payload.carbs, payload.fat)

        meal = MealEntry(
            id=new_id(),
            user_id=owner_id,
            calories=calories,
            date=payload.date or now,
            created_at=now,
            updated_at=now,
            **data,
        )
        return await self._insert(meal)

    async def daily_summary(self, owner_id: str, day: date) -> NutritionSummary:
        start, end = day_bounds(day)
        meals = await self.list_all(owner_id, MealFilters(start_date=start, end_date=end))
        return generate_nutrition_summary(meals, day)


# ==================== Profiles ====================


class ProfileService(DocumentService[Profile]):
    """One profile per user; the profile id is the owner id."""

    container_name = "profiles"
    model = Profile
    owner_field = "id"

    def __init__(self, store: DocumentStore, avatars: BlobStore | None) -> None:
        super().__init__(store)
        self.avatars = avatars

    async def create(self, owner_id: str, payload: ProfileCreate) -> Profile:
        now = utcnow()
        data = payload.model_dump(exclude={"preferences"})
        profile = Profile(
            id=owner_id,
            preferences=payload.preferences or Preferences(),
            created_at=now,
            updated_at=now,
            **data,
        )
        return await self._insert(profile)

    async def get_by_id(self, profile_id: str) -> Profile | None:
        return await self._get(profile_id, profile_id)

    async def update(self, profile_id: str, changes: ProfileUpdate) -> Profile | None:
        return await self._update(profile_id, profile_id, changes)

    async def delete(self, profile_id: str) -> bool:
        return await self._delete(profile_id, profile_id)

    async def set_avatar(self, profile_id: str, data: bytes, content_type: str) -> Profile | None:
        """Upload an avatar image and point the profile at it.

        Returns:
            The updated profile, or None when the profile does not exist

        Raises:
            ServiceUnavailable: No blob storage is configured
        """
        if self.avatars is None:
            raise ServiceUnavailable("File uploads are not configured")
        if await self.get_by_id(profile_id) is None:
            return None

        url = await self.avatars.upload(profile_id, data, content_type)
        return await self.update(profile_id, ProfileUpdate(avatar_url=url))
