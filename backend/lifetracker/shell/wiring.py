"""Service graph construction.

Builds every service once per app from Settings and a DocumentStore.
"""

from dataclasses import dataclass

from .analytics import AnalyticsService
from .collaborators import (
    BlobStore,
    InMemoryBlobStore,
    StoreSearchIndex,
    LocalTextAnalytics,
    SearchIndex,
    TextAnalytics,
)
from .config import Settings
from .services import (
    ActivityService,
    GoalService,
    JournalService,
    MealService,
    ProfileService,
    WeightService,
)
from .store import DocumentStore, FirestoreConfig


ATTACHMENTS_CONTAINER = "journal-attachments"
AVATARS_CONTAINER = "avatars"


@dataclass
class Services:
    settings: Settings
    store: DocumentStore
    activities: ActivityService
    goals: GoalService
    journals: JournalService
    weights: WeightService
    meals: MealService
    profiles: ProfileService
    analytics: AnalyticsService


def build_store(settings: Settings) -> DocumentStore:
    return DocumentStore(
        FirestoreConfig(project_id=settings.firestore_project, database=settings.firestore_database),
        use_memory=settings.use_memory_store,
        allow_fallback=settings.allow_store_fallback,
    )


def build_services(
    settings: Settings,
    store: DocumentStore | None = None,
    text_analytics: TextAnalytics | None = None,
    search_index: SearchIndex | None = None,
    attachments: BlobStore | None = None,
    avatars: BlobStore | None = None,
) -> Services:
    """Wire services together. Collaborators default to local implementations.

    The in-memory blob stores are development only; production uploads need
    explicit blob stores and are otherwise unavailable.
    """
    store = store or build_store(settings)
    text_analytics = text_analytics or LocalTextAnalytics()
    if not settings.is_production:
        attachments = attachments or InMemoryBlobStore(settings.blob_base_url, ATTACHMENTS_CONTAINER)
        avatars = avatars or InMemoryBlobStore(settings.blob_base_url, AVATARS_CONTAINER)

    activities = ActivityService(store)
    journals = JournalService(
        store,
        text_analytics=text_analytics,
        search_index=search_index or StoreSearchIndex(store),
        attachments=attachments,
        search_enabled=settings.search_enabled,
    )

    return Services(
        settings=settings,
        store=store,
        activities=activities,
        goals=GoalService(store),
        journals=journals,
        weights=WeightService(store),
        meals=MealService(store),
        profiles=ProfileService(store, avatars),
        analytics=AnalyticsService(
            activities,
            journals,
            text_analytics,
            advanced_insights_enabled=settings.advanced_insights_enabled,
        ),
    )
