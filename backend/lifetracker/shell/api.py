"""REST API - Starlette route handlers for the /api surface.

Handlers parse and validate input, call one service and map the result to a
status code. All error-to-response mapping happens in the ``endpoint``
decorator.
"""

import functools
import json
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Awaitable, Callable

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from starlette.datastructures import UploadFile
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from ..core.errors import Forbidden, LifeTrackerError, NotFound, ValidationError
from ..core.models import (
    ActivityCreate,
    ActivityFilters,
    ActivityUpdate,
    CamelModel,
    DateRangeFilters,
    GoalCreate,
    GoalFilters,
    GoalUpdate,
    JournalCreate,
    JournalFilters,
    JournalUpdate,
    MealCreate,
    MealFilters,
    MealUpdate,
    ProfileCreate,
    ProfileUpdate,
    WeightCreate,
    WeightUpdate,
    utcnow,
)
from ..core.query import DEFAULT_LIMIT, DEFAULT_OFFSET
from .analytics import DEFAULT_MOOD_ENTRIES
from .auth import RequestContext
from .wiring import Services


logger = logging.getLogger(__name__)

MAX_LIMIT = 100
MAX_MOOD_ENTRIES = 50
DEFAULT_RANGE_DAYS = 30
MAX_UPLOAD_BYTES = 5 * 1024 * 1024
ALLOWED_IMAGE_TYPES = ("image/jpeg", "image/png", "image/gif", "image/webp")

Handler = Callable[[Request], Awaitable[Response]]


# ==================== Plumbing ====================


def endpoint(handler: Handler) -> Handler:
    """Convert raised errors into JSON error responses."""

    @functools.wraps(handler)
    async def wrapper(request: Request) -> Response:
        try:
            return await handler(request)
        except LifeTrackerError as e:
            if e.status_code >= 500:
                logger.error("%s on %s %s: %s", e.error, request.method, request.url.path, e.message)
            return JSONResponse(e.to_dict(), status_code=e.status_code)
        except PydanticValidationError as e:
            details = json.loads(e.json(include_url=False, include_context=False))
            return JSONResponse(
                {"error": "ValidationError", "message": "Invalid request", "details": details},
                status_code=400,
            )
        except Exception as e:
            logger.exception("Unhandled error on %s %s", request.method, request.url.path)
            return JSONResponse({"error": "InternalServerError", "message": str(e)}, status_code=500)

    return wrapper


def services_of(request: Request) -> Services:
    return request.app.state.services


def context_of(request: Request) -> RequestContext:
    context = getattr(request.state, "context", None)
    if context is None:
        raise LifeTrackerError("Request context missing")
    return context


async def read_body(request: Request, model: type[BaseModel]) -> Any:
    try:
        body = await request.json()
    except json.JSONDecodeError as e:
        raise ValidationError("Request body must be valid JSON") from e
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return model.model_validate(body)


def int_param(request: Request, name: str, default: int, minimum: int, maximum: int | None = None) -> int:
    raw = request.query_params.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ValidationError(f"{name} must be an integer") from e

    if value < minimum or (maximum is not None and value > maximum):
        bounds = f"between {minimum} and {maximum}" if maximum is not None else f"at least {minimum}"
        raise ValidationError(f"{name} must be {bounds}")
    return value


def page_params(request: Request) -> tuple[int, int]:
    limit = int_param(request, "limit", DEFAULT_LIMIT, 1, MAX_LIMIT)
    offset = int_param(request, "offset", DEFAULT_OFFSET, 0)
    return limit, offset


def query_model(request: Request, model: type[BaseModel]) -> Any:
    params: dict[str, Any] = dict(request.query_params)
    tags = request.query_params.getlist("tags")
    if len(tags) > 1:
        params["tags"] = ",".join(tags)
    return model.model_validate(params)


def date_range(request: Request, default_days: int | None) -> tuple[datetime | None, datetime | None]:
    """startDate/endDate query params, defaulting to the last ``default_days``."""
    filters = query_model(request, DateRangeFilters)
    start, end = filters.start_date, filters.end_date
    if default_days is not None:
        end = end or utcnow()
        start = start or end - timedelta(days=default_days)
    return start, end


def json_response(model: CamelModel, status_code: int = 200) -> JSONResponse:
    return JSONResponse(model.to_document(), status_code=status_code)


def not_found(kind: str, item_id: str) -> JSONResponse:
    return JSONResponse(NotFound(f"{kind} {item_id} not found").to_dict(), status_code=404)


async def read_image(request: Request, field_name: str) -> tuple[bytes, str, str]:
    """Read one image upload from a multipart form.

    Returns:
        Tuple of (data, file_name, content_type)
    """
    form = await request.form()
    upload = form.get(field_name)
    if not isinstance(upload, UploadFile):
        raise ValidationError(f"Multipart field '{field_name}' is required")

    content_type = upload.content_type or ""
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise ValidationError(
            "Unsupported file type", details={"allowed": list(ALLOWED_IMAGE_TYPES)}
        )

    data = await upload.read()
    if len(data) > MAX_UPLOAD_BYTES:
        raise ValidationError("File exceeds the 5 MB limit")
    return data, upload.filename or "upload", content_type


# ==================== CRUD ====================


@dataclass(frozen=True)
class Resource:
    """An owned resource exposed as /api/<name>."""

    name: str
    kind: str
    create_model: type[BaseModel]
    update_model: type[BaseModel]
    filters_model: type[BaseModel]


RESOURCES = (
    Resource("activities", "Activity", ActivityCreate, ActivityUpdate, ActivityFilters),
    Resource("goals", "Goal", GoalCreate, GoalUpdate, GoalFilters),
    Resource("journals", "Journal entry", JournalCreate, JournalUpdate, JournalFilters),
    Resource("weights", "Weight entry", WeightCreate, WeightUpdate, DateRangeFilters),
    Resource("meals", "Meal", MealCreate, MealUpdate, MealFilters),
)


def crud_routes(resource: Resource) -> list[Route]:
    """POST/GET collection and GET/PUT/DELETE item routes for a resource."""

    def service(request: Request) -> Any:
        return getattr(services_of(request), resource.name)

    @endpoint
    async def create(request: Request) -> Response:
        payload = await read_body(request, resource.create_model)
        item = await service(request).create(context_of(request).owner_id, payload)
        return json_response(item, status_code=201)

    @endpoint
    async def list_items(request: Request) -> Response:
        limit, offset = page_params(request)
        filters = query_model(request, resource.filters_model)
        page = await service(request).list(context_of(request).owner_id, filters, limit, offset)
        return json_response(page)

    @endpoint
    async def get_item(request: Request) -> Response:
        item_id = request.path_params["id"]
        item = await service(request).get_by_id(item_id, context_of(request).owner_id)
        if item is None:
            return not_found(resource.kind, item_id)
        return json_response(item)

    @endpoint
    async def update_item(request: Request) -> Response:
        item_id = request.path_params["id"]
        changes = await read_body(request, resource.update_model)
        item = await service(request).update(item_id, context_of(request).owner_id, changes)
        if item is None:
            return not_found(resource.kind, item_id)
        return json_response(item)

    @endpoint
    async def delete_item(request: Request) -> Response:
        item_id = request.path_params["id"]
        if not await service(request).delete(item_id, context_of(request).owner_id):
            return not_found(resource.kind, item_id)
        return Response(status_code=204)

    base = f"/api/{resource.name}"
    return [
        Route(base, create, methods=["POST"]),
        Route(base, list_items, methods=["GET"]),
        Route(base + "/{id}", get_item, methods=["GET"]),
        Route(base + "/{id}", update_item, methods=["PUT"]),
        Route(base + "/{id}", delete_item, methods=["DELETE"]),
    ]


# ==================== Journals ====================


@endpoint
async def search_journals(request: Request) -> Response:
    text = request.query_params.get("q") or request.query_params.get("query") or "*"
    limit = int_param(request, "limit", DEFAULT_LIMIT, 1, MAX_LIMIT)
    cursor = request.query_params.get("cursor")
    offset_or_cursor: int | str = cursor if cursor else int_param(request, "offset", DEFAULT_OFFSET, 0)

    filters = query_model(request, JournalFilters)
    result = await services_of(request).journals.search(
        context_of(request).owner_id, text, filters, limit, offset_or_cursor
    )
    return json_response(result)


@endpoint
async def upload_attachment(request: Request) -> Response:
    data, file_name, content_type = await read_image(request, "file")
    attachment = await services_of(request).journals.upload_attachment(
        context_of(request).owner_id, data, file_name, content_type
    )
    return json_response(attachment, status_code=201)


@endpoint
async def sentiment_trends(request: Request) -> Response:
    start, end = date_range(request, DEFAULT_RANGE_DAYS)
    result = await services_of(request).analytics.sentiment_trends(context_of(request).owner_id, start, end)
    return json_response(result)


@endpoint
async def topic_analysis(request: Request) -> Response:
    start, end = date_range(request, DEFAULT_RANGE_DAYS)
    result = await services_of(request).analytics.topic_analysis(context_of(request).owner_id, start, end)
    return json_response(result)


@endpoint
async def mood_recommendations(request: Request) -> Response:
    count = int_param(request, "count", DEFAULT_MOOD_ENTRIES, 1, MAX_MOOD_ENTRIES)
    result = await services_of(request).analytics.mood_insights(context_of(request).owner_id, count)
    return json_response(result)


# ==================== Analytics ====================


@endpoint
async def fitness_summary(request: Request) -> Response:
    start, end = date_range(request, DEFAULT_RANGE_DAYS)
    summary = await services_of(request).analytics.fitness_summary(context_of(request).owner_id, start, end)
    return json_response(summary)


@endpoint
async def weekly_trends(request: Request) -> Response:
    trends = await services_of(request).analytics.weekly_trends(context_of(request).owner_id)
    return json_response(trends)


@endpoint
async def weight_trend(request: Request) -> Response:
    start, end = date_range(request, None)
    trend = await services_of(request).weights.trend(context_of(request).owner_id, start, end)
    return json_response(trend)


@endpoint
async def nutrition_summary(request: Request) -> Response:
    raw = request.query_params.get("date")
    try:
        day = date.fromisoformat(raw) if raw else utcnow().date()
    except ValueError as e:
        raise ValidationError("date must be YYYY-MM-DD") from e

    summary = await services_of(request).meals.daily_summary(context_of(request).owner_id, day)
    return json_response(summary)


# ==================== Profile ====================


def require_self(context: RequestContext, profile_id: str) -> None:
    if profile_id != context.owner_id:
        raise Forbidden("You can only modify your own profile")


@endpoint
async def create_profile(request: Request) -> Response:
    payload = await read_body(request, ProfileCreate)
    profile = await services_of(request).profiles.create(context_of(request).owner_id, payload)
    return json_response(profile, status_code=201)


@endpoint
async def get_own_profile(request: Request) -> Response:
    context = context_of(request)
    profile = await services_of(request).profiles.get_by_id(context.owner_id)
    if profile is not None:
        return json_response(profile)

    # No profile yet; return what the identity provider knows
    return JSONResponse({
        "id": context.owner_id,
        "email": context.email,
        "name": context.claims.get("name"),
        "claims": context.claims,
    })


@endpoint
async def get_profile(request: Request) -> Response:
    profile_id = request.path_params["id"]
    profile = await services_of(request).profiles.get_by_id(profile_id)
    if profile is None:
        return not_found("Profile", profile_id)
    return json_response(profile)


@endpoint
async def update_profile(request: Request) -> Response:
    profile_id = request.path_params["id"]
    require_self(context_of(request), profile_id)

    changes = await read_body(request, ProfileUpdate)
    profile = await services_of(request).profiles.update(profile_id, changes)
    if profile is None:
        return not_found("Profile", profile_id)
    return json_response(profile)


@endpoint
async def delete_profile(request: Request) -> Response:
    profile_id = request.path_params["id"]
    require_self(context_of(request), profile_id)

    if not await services_of(request).profiles.delete(profile_id):
        return not_found("Profile", profile_id)
    return Response(status_code=204)


@endpoint
async def upload_avatar(request: Request) -> Response:
    profile_id = request.path_params["id"]
    require_self(context_of(request), profile_id)

    data, _, content_type = await read_image(request, "avatar")
    profile = await services_of(request).profiles.set_avatar(profile_id, data, content_type)
    if profile is None:
        return not_found("Profile", profile_id)
    return JSONResponse({
        "success": True,
        "avatarUrl": profile.avatar_url,
        "profile": profile.to_document(),
    })


# ==================== Health ====================


async def health_check(request: Request) -> JSONResponse:
    """Health check endpoint for Cloud Run."""
    return JSONResponse({
        "status": "healthy",
        "service": "lifetracker-api",
        "store": services_of(request).store.backend_name,
    })


def api_routes() -> list[Route]:
    """Every REST route. Fixed paths precede /{id} patterns they would shadow."""
    routes = [
        Route("/health", health_check, methods=["GET"]),
        Route("/api/health", health_check, methods=["GET"]),
        Route("/api/journals/search", search_journals, methods=["GET"]),
        Route("/api/journals/attachments", upload_attachment, methods=["POST"]),
        Route("/api/journals/insights/sentiment-trends", sentiment_trends, methods=["GET"]),
        Route("/api/journals/insights/topic-analysis", topic_analysis, methods=["GET"]),
        Route("/api/journals/insights/mood-recommendations", mood_recommendations, methods=["GET"]),
        Route("/api/analytics/fitness", fitness_summary, methods=["GET"]),
        Route("/api/analytics/weekly-trends", weekly_trends, methods=["GET"]),
        Route("/api/weights/trend", weight_trend, methods=["GET"]),
        Route("/api/meals/summary", nutrition_summary, methods=["GET"]),
        Route("/api/profile", create_profile, methods=["POST"]),
        Route("/api/profile", get_own_profile, methods=["GET"]),
        Route("/api/profile/{id}", get_profile, methods=["GET"]),
        Route("/api/profile/{id}", update_profile, methods=["PUT"]),
        Route("/api/profile/{id}", delete_profile, methods=["DELETE"]),
        Route("/api/profile/{id}/avatar", upload_avatar, methods=["POST"]),
    ]
    for resource in RESOURCES:
        routes.extend(crud_routes(resource))
    return routes
