"""Core Data Models - Pydantic models for type safety.

Stored documents and JSON bodies use camelCase keys (userId, createdAt);
attributes are snake_case. Timestamps are UTC and serialize to fixed-width
ISO-8601 strings so stored values compare chronologically as plain strings.
"""

from datetime import date as DateType
from datetime import datetime, timedelta, timezone
from typing import Annotated, Any, Generic, Literal, Optional, TypeVar

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
)
from pydantic.alias_generators import to_camel


def ensure_utc(value: datetime) -> datetime:
    """Interpret naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Render a timestamp as e.g. 2023-06-01T00:00:00.000Z."""
    return ensure_utc(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utcnow() -> datetime:
    """Current UTC time truncated to the stored (millisecond) precision."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def next_timestamp(previous: datetime | None) -> datetime:
    """A fresh timestamp guaranteed to be later than ``previous``."""
    now = utcnow()
    if previous is not None and now <= previous:
        return previous + timedelta(milliseconds=1)
    return now


Timestamp = Annotated[
    datetime,
    AfterValidator(ensure_utc),
    PlainSerializer(format_timestamp, return_type=str, when_used="json"),
]

ContentFormat = Literal["plain", "markdown"]
Theme = Literal["light", "dark", "system"]
GoalStatus = Literal["active", "achieved"]
WeightUnit = Literal["kg", "lbs"]
MealType = Literal["breakfast", "lunch", "dinner", "snack"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict[str, Any]:
        """Serialize to the JSON-compatible document stored in the database."""
        return self.model_dump(mode="json", by_alias=True)

    def set_fields(self) -> dict[str, Any]:
        """Only the fields the caller explicitly set, as document keys."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


# ==================== Activities ====================


class Activity(CamelModel):
    """A logged fitness activity."""

    id: str
    user_id: str
    type: str = Field(min_length=1, description="Free-form category, e.g. running")
    duration: int = Field(gt=0, description="Minutes")
    calories: int = Field(ge=0)
    date: Timestamp
    created_at: Timestamp
    updated_at: Timestamp
    notes: Optional[str] = None


class ActivityCreate(CamelModel):
    type: str = Field(min_length=1)
    duration: int = Field(gt=0)
    calories: int = Field(ge=0)
    date: Optional[Timestamp] = None
    notes: Optional[str] = None


class ActivityUpdate(CamelModel):
    type: Optional[str] = Field(default=None, min_length=1)
    duration: Optional[int] = Field(default=None, gt=0)
    calories: Optional[int] = Field(default=None, ge=0)
    date: Optional[Timestamp] = None
    notes: Optional[str] = None


class ActivityFilters(CamelModel):
    type: Optional[str] = None
    start_date: Optional[Timestamp] = None
    end_date: Optional[Timestamp] = None


# ==================== Goals ====================


class FitnessGoal(CamelModel):
    """A fitness objective with a target date and progress percentage."""

    id: str
    user_id: str
    title: str = Field(min_length=1)
    target_date: Timestamp
    created_at: Timestamp
    updated_at: Optional[Timestamp] = None
    notes: Optional[str] = None
    achieved: bool = False
    progress: int = Field(default=0, ge=0, le=100)
    type: Optional[str] = None


class GoalCreate(CamelModel):
    title: str = Field(min_length=1)
    target_date: Timestamp
    notes: Optional[str] = None
    achieved: bool = False
    progress: int = Field(default=0, ge=0, le=100)
    type: Optional[str] = None


class GoalUpdate(CamelModel):
    title: Optional[str] = Field(default=None, min_length=1)
    target_date: Optional[Timestamp] = None
    notes: Optional[str] = None
    achieved: Optional[bool] = None
    progress: Optional[int] = Field(default=None, ge=0, le=100)
    type: Optional[str] = None


class GoalFilters(CamelModel):
    type: Optional[str] = None
    status: Optional[GoalStatus] = None


# ==================== Journals ====================


class Attachment(CamelModel):
    id: str
    file_name: str
    content_type: str
    size: int = Field(ge=0)
    url: str


class JournalEntry(CamelModel):
    """A journal entry with an externally computed sentiment score."""

    id: str
    user_id: str
    content: str = Field(min_length=1)
    content_format: ContentFormat = "plain"
    date: Timestamp
    mood: Optional[str] = None
    sentiment_score: float = Field(ge=0.0, le=1.0)
    attachments: list[Attachment] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    created_at: Timestamp
    updated_at: Timestamp


class JournalCreate(CamelModel):
    content: str = Field(min_length=1)
    content_format: ContentFormat = "plain"
    date: Optional[Timestamp] = None
    mood: Optional[str] = None
    attachments: list[Attachment] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


class JournalUpdate(CamelModel):
    content: Optional[str] = Field(default=None, min_length=1)
    content_format: Optional[ContentFormat] = None
    date: Optional[Timestamp] = None
    mood: Optional[str] = None
    attachments: Optional[list[Attachment]] = None
    tags: Optional[list[str]] = None


class JournalFilters(CamelModel):
    start_date: Optional[Timestamp] = None
    end_date: Optional[Timestamp] = None
    min_sentiment: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    max_sentiment: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    tags: Optional[list[str]] = None
    mood: Optional[str] = None

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, value: Any) -> Any:
        # Query strings carry tags as "a,b,c"
        if isinstance(value, str):
            return [tag.strip() for tag in value.split(",") if tag.strip()]
        return value


class FacetValue(BaseModel):
    value: str
    count: int


class SearchResult(CamelModel):
    results: list[JournalEntry]
    count: int
    next_cursor: Optional[str] = None
    facets: Optional[dict[str, list[FacetValue]]] = None


# ==================== Profiles ====================


class Preferences(CamelModel):
    theme: Theme = "system"
    notifications: bool = True


class Profile(CamelModel):
    """User profile. The id is the owner's user id."""

    id: str
    name: str = Field(min_length=1)
    email: str = Field(pattern=r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    preferences: Preferences = Field(default_factory=Preferences)
    created_at: Timestamp
    updated_at: Optional[Timestamp] = None


class ProfileCreate(CamelModel):
    name: str = Field(min_length=1)
    email: str = Field(pattern=r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    preferences: Optional[Preferences] = None


class ProfileUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[str] = Field(default=None, pattern=r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    preferences: Optional[Preferences] = None


# ==================== Weight ====================


class WeightEntry(CamelModel):
    id: str
    user_id: str
    weight: float = Field(gt=0)
    unit: WeightUnit = "kg"
    date: Timestamp
    notes: Optional[str] = None
    created_at: Timestamp
    updated_at: Timestamp


class WeightCreate(CamelModel):
    weight: float = Field(gt=0)
    unit: WeightUnit = "kg"
    date: Optional[Timestamp] = None
    notes: Optional[str] = None


class WeightUpdate(CamelModel):
    weight: Optional[float] = Field(default=None, gt=0)
    unit: Optional[WeightUnit] = None
    date: Optional[Timestamp] = None
    notes: Optional[str] = None


class DateRangeFilters(CamelModel):
    start_date: Optional[Timestamp] = None
    end_date: Optional[Timestamp] = None


class WeightTrend(CamelModel):
    """Weight change over a date range. Zeroed when there are no entries."""

    count: int
    first: Optional[float] = None
    latest: Optional[float] = None
    change: float = 0.0
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    average: float = 0.0
    unit: Optional[WeightUnit] = None


# ==================== Meals ====================


class MealEntry(CamelModel):
    """A food item eaten as part of a meal."""

    id: str
    user_id: str
    food_name: str = Field(min_length=1)
    meal_type: MealType
    calories: int = Field(ge=0)
    protein: float = Field(default=0, ge=0, description="Grams")
    carbs: float = Field(default=0, ge=0, description="Grams")
    fat: float = Field(default=0, ge=0, description="Grams")
    serving_size: Optional[float] = Field(default=None, gt=0)
    serving_unit: Optional[str] = None
    date: Timestamp
    notes: Optional[str] = None
    created_at: Timestamp
    updated_at: Timestamp


class MealCreate(CamelModel):
    food_name: str = Field(min_length=1)
    meal_type: MealType
    calories: Optional[int] = Field(default=None, ge=0, description="Computed from macros when omitted")
    protein: float = Field(default=0, ge=0)
    carbs: float = Field(default=0, ge=0)
    fat: float = Field(default=0, ge=0)
    serving_size: Optional[float] = Field(default=None, gt=0)
    serving_unit: Optional[str] = None
    date: Optional[Timestamp] = None
    notes: Optional[str] = None


class MealUpdate(CamelModel):
    food_name: Optional[str] = Field(default=None, min_length=1)
    meal_type: Optional[MealType] = None
    calories: Optional[int] = Field(default=None, ge=0)
    protein: Optional[float] = Field(default=None, ge=0)
    carbs: Optional[float] = Field(default=None, ge=0)
    fat: Optional[float] = Field(default=None, ge=0)
    serving_size: Optional[float] = Field(default=None, gt=0)
    serving_unit: Optional[str] = None
    date: Optional[Timestamp] = None
    notes: Optional[str] = None


class MealFilters(CamelModel):
    meal_type: Optional[MealType] = None
    start_date: Optional[Timestamp] = None
    end_date: Optional[Timestamp] = None


class NutritionSummary(CamelModel):
    """Totals for one day of meals."""

    date: DateType
    total_calories: int = Field(ge=0)
    total_protein: float = Field(ge=0)
    total_carbs: float = Field(ge=0)
    total_fat: float = Field(ge=0)
    meal_count: int = Field(ge=0)
    calories_by_meal_type: dict[str, int]
    meals: list[MealEntry]


# ==================== Pagination ====================

ItemT = TypeVar("ItemT")


class Page(CamelModel, Generic[ItemT]):
    items: list[ItemT]
    total: int
    limit: int
    offset: int


# ==================== Analytics ====================


class FitnessSummary(CamelModel):
    total_duration: int
    total_calories: int
    average_duration_per_day: float
    average_calories_per_day: float
    activity_count_by_type: dict[str, int]
    calories_by_type: dict[str, int]
    duration_by_type: dict[str, int]
    active_days: int
    activities_count: int


class WeeklyChanges(CamelModel):
    duration_change: float
    calories_change: float
    activity_count_change: float


class WeeklyTrends(CamelModel):
    current: FitnessSummary
    previous: FitnessSummary
    changes: WeeklyChanges


class DaySentiment(BaseModel):
    date: str
    sentiment: float


class EmotionFrequency(BaseModel):
    emotion: str
    frequency: int


class SentimentTrends(CamelModel):
    average_sentiment: float
    trend_by_day: list[DaySentiment]
    top_emotions: list[EmotionFrequency]


class TopicFrequency(BaseModel):
    topic: str
    frequency: int


class TopicSentiment(BaseModel):
    topic: str
    sentiment: float


class TopicAnalysis(CamelModel):
    top_topics: list[TopicFrequency]
    topic_sentiment: list[TopicSentiment]


class MoodInsights(CamelModel):
    mood_summary: str
    recommendations: list[str]
    positive_patterns: list[str]
    improvement_areas: list[str]
