"""Integration tests for API endpoints using Starlette TestClient."""

import pytest
from starlette.testclient import TestClient

from conftest import auth_headers

from lifetracker.main import create_app
from lifetracker.shell.config import Settings
from lifetracker.shell.store import DocumentStore
from lifetracker.shell.wiring import build_services


U1 = auth_headers("u1", email="u1@example.com", name="User One")
U2 = auth_headers("u2")

ACTIVITY = {"type": "running", "duration": 30, "calories": 300, "date": "2023-06-01"}
GOAL = {"title": "Run 10k", "targetDate": "2023-09-01T00:00:00Z"}
PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


@pytest.fixture
def client(services):
    """Test client over an in-memory store."""
    with TestClient(create_app(services=services)) as client:
        yield client


def production_client() -> TestClient:
    settings = Settings(app_env="production", mcp_enabled=False)
    return TestClient(create_app(settings, DocumentStore.in_memory()))


class TestHealthEndpoint:
    """Tests for /health endpoints."""

    def test_health_returns_200(self, client):
        """Health endpoint returns 200 OK."""
        response = client.get("/health")
        assert response.status_code == 200

    def test_health_returns_json(self, client):
        """Health endpoint returns JSON with status and store backend."""
        data = client.get("/api/health").json()
        assert data["status"] == "healthy"
        assert data["service"] == "lifetracker-api"
        assert data["store"] == "memory"

    def test_health_needs_no_identity(self):
        """Health is public even in production."""
        with production_client() as client:
            assert client.get("/api/health").status_code == 200


class TestAuthentication:
    """Tests for identity handling."""

    def test_production_requires_identity(self):
        """Without a token, production rejects /api requests."""
        with production_client() as client:
            response = client.get("/api/activities")

        assert response.status_code == 401
        assert response.json()["error"] == "Unauthorized"

    def test_production_accepts_token(self):
        """With a token, production serves the request."""
        with production_client() as client:
            response = client.get("/api/activities", headers=U1)
        assert response.status_code == 200

    def test_dev_identity(self, client):
        """In development, anonymous requests act as the dev user."""
        created = client.post("/api/activities", json=ACTIVITY).json()
        assert created["userId"] == "dev-user-123"


class TestActivityEndpoints:
    """CRUD tests for /api/activities."""

    def test_create_then_list_scenario(self, client):
        """Created activity is listed for its owner only."""
        created = client.post("/api/activities", json=ACTIVITY, headers=U1)
        assert created.status_code == 201
        activity = created.json()
        assert activity["date"] == "2023-06-01T00:00:00.000Z"

        listed = client.get("/api/activities?limit=10&offset=0", headers=U1)
        assert listed.status_code == 200
        assert listed.json() == {"items": [activity], "total": 1, "limit": 10, "offset": 0}

        other = client.get("/api/activities?limit=10&offset=0", headers=U2).json()
        assert other["items"] == []
        assert other["total"] == 0

    def test_body_user_id_ignored(self, client):
        """Owner comes from the token, never the body."""
        created = client.post("/api/activities", json={**ACTIVITY, "userId": "u2"}, headers=U1).json()
        assert created["userId"] == "u1"

    def test_get_update_delete(self, client):
        """Item routes read, update and delete."""
        activity = client.post("/api/activities", json=ACTIVITY, headers=U1).json()
        url = f"/api/activities/{activity['id']}"

        assert client.get(url, headers=U1).json()["id"] == activity["id"]

        updated = client.put(url, json={"duration": 45}, headers=U1)
        assert updated.status_code == 200
        assert updated.json()["duration"] == 45
        assert updated.json()["createdAt"] == activity["createdAt"]

        deleted = client.delete(url, headers=U1)
        assert deleted.status_code == 204
        assert deleted.content == b""
        assert client.get(url, headers=U1).status_code == 404

    def test_foreign_record_is_not_found(self, client):
        """Other users get 404, not 403."""
        activity = client.post("/api/activities", json=ACTIVITY, headers=U1).json()
        url = f"/api/activities/{activity['id']}"

        assert client.get(url, headers=U2).status_code == 404
        assert client.put(url, json={"duration": 5}, headers=U2).status_code == 404
        assert client.delete(url, headers=U2).status_code == 404

    def test_type_filter(self, client):
        """Query filters narrow the list."""
        client.post("/api/activities", json=ACTIVITY, headers=U1)
        client.post("/api/activities", json={**ACTIVITY, "type": "yoga"}, headers=U1)

        data = client.get("/api/activities?type=yoga", headers=U1).json()
        assert data["total"] == 1
        assert data["items"][0]["type"] == "yoga"

    @pytest.mark.parametrize("query", ["limit=0", "limit=101", "limit=abc", "offset=-1"])
    def test_bad_paging_is_400(self, client, query):
        """Out of range paging parameters are rejected."""
        response = client.get(f"/api/activities?{query}", headers=U1)
        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"

    def test_invalid_body_is_400(self, client):
        """Schema violations are 400 with details."""
        response = client.post("/api/activities", json={**ACTIVITY, "duration": 0}, headers=U1)

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "ValidationError"
        assert body["details"][0]["loc"] == ["duration"]

    def test_malformed_json_is_400(self, client):
        """Unparseable bodies are 400."""
        response = client.post(
            "/api/activities", content=b"{not json", headers={**U1, "Content-Type": "application/json"}
        )
        assert response.status_code == 400


class TestGoalEndpoints:
    """Tests for /api/goals."""

    def test_missing_goal_scenario(self, client):
        """PUT and DELETE of an unknown goal are both 404."""
        put = client.put("/api/goals/does-not-exist", json={"progress": 10}, headers=U1)
        assert put.status_code == 404
        assert put.json()["error"] == "NotFound"

        delete = client.delete("/api/goals/does-not-exist", headers=U1)
        assert delete.status_code == 404
        assert delete.json()["error"] == "NotFound"

    def test_invalid_goal_is_400(self, client):
        """Invalid goal payloads are 400, like every other resource."""
        assert client.post("/api/goals", json={"title": ""}, headers=U1).status_code == 400
        assert client.post("/api/goals", json={**GOAL, "progress": 150}, headers=U1).status_code == 400

    def test_invalid_status_filter_is_400(self, client):
        """Unknown status values are 400."""
        assert client.get("/api/goals?status=maybe", headers=U1).status_code == 400

    def test_status_filter(self, client):
        """Achieved goals filter by status."""
        client.post("/api/goals", json={**GOAL, "achieved": True}, headers=U1)
        client.post("/api/goals", json=GOAL, headers=U1)

        assert client.get("/api/goals?status=achieved", headers=U1).json()["total"] == 1

    def test_invalid_update_is_400(self, client):
        """Merging an invalid change is 400 and leaves the goal untouched."""
        goal = client.post("/api/goals", json=GOAL, headers=U1).json()
        url = f"/api/goals/{goal['id']}"

        assert client.put(url, json={"progress": -5}, headers=U1).status_code == 400
        assert client.get(url, headers=U1).json()["progress"] == 0


class TestJournalEndpoints:
    """Tests for /api/journals and its extras."""

    def test_create_scores_sentiment(self, client):
        """Entries come back with a sentiment score."""
        entry = client.post(
            "/api/journals", json={"content": "Such a good day", "tags": ["life"]}, headers=U1
        ).json()
        assert entry["sentimentScore"] == 1.0
        assert entry["contentFormat"] == "plain"

    def test_search_not_shadowed_by_id_route(self, client):
        """/search is routed to search, not treated as an id."""
        client.post("/api/journals", json={"content": "Trail run with friends", "tags": ["running"]}, headers=U1)

        response = client.get("/api/journals/search?q=trail&limit=5", headers=U1)
        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 1
        assert data["facets"]["tags"][0] == {"value": "running", "count": 1}

    def test_tag_filter_from_query(self, client):
        """Comma-separated tags filter the list."""
        client.post("/api/journals", json={"content": "a", "tags": ["work"]}, headers=U1)
        client.post("/api/journals", json={"content": "b", "tags": ["home"]}, headers=U1)

        data = client.get("/api/journals?tags=home,gym", headers=U1).json()
        assert [e["content"] for e in data["items"]] == ["b"]

    def test_attachment_upload(self, client):
        """Images upload and return attachment metadata."""
        response = client.post(
            "/api/journals/attachments",
            files={"file": ("photo.png", PNG, "image/png")},
            headers=U1,
        )
        assert response.status_code == 201
        data = response.json()
        assert data["fileName"] == "photo.png"
        assert data["size"] == len(PNG)

    def test_attachment_rejects_non_images(self, client):
        """Non-image uploads are 400."""
        response = client.post(
            "/api/journals/attachments",
            files={"file": ("notes.txt", b"hello", "text/plain")},
            headers=U1,
        )
        assert response.status_code == 400

    def test_insights(self, client):
        """Insight endpoints return their shapes."""
        client.post("/api/journals", json={"content": "Happy and grateful", "tags": ["family"]}, headers=U1)

        trends = client.get("/api/journals/insights/sentiment-trends", headers=U1).json()
        topics = client.get("/api/journals/insights/topic-analysis", headers=U1).json()
        mood = client.get("/api/journals/insights/mood-recommendations?count=5", headers=U1).json()

        assert trends["averageSentiment"] == 1.0
        assert "topTopics" in topics
        assert mood["recommendations"]

    def test_insights_disabled_is_503(self):
        """Disabled insights answer 503."""
        settings = Settings(advanced_insights_enabled=False, mcp_enabled=False)
        services = build_services(settings, DocumentStore.in_memory())
        with TestClient(create_app(services=services)) as client:
            response = client.get("/api/journals/insights/sentiment-trends", headers=U1)

        assert response.status_code == 503
        assert response.json()["error"] == "ServiceUnavailable"


class TestAnalyticsEndpoints:
    """Tests for /api/analytics."""

    def test_fitness_summary(self, client):
        """Summary covers the requested range."""
        client.post("/api/activities", json=ACTIVITY, headers=U1)
        data = client.get(
            "/api/analytics/fitness?startDate=2023-05-01&endDate=2023-06-30", headers=U1
        ).json()

        assert data["totalDuration"] == 30
        assert data["activityCountByType"] == {"running": 1}

    def test_weekly_trends(self, client):
        """Weekly trends compare two empty weeks as no change."""
        data = client.get("/api/analytics/weekly-trends", headers=U1).json()
        assert data["changes"] == {"durationChange": 0, "caloriesChange": 0, "activityCountChange": 0}


class TestWeightAndMealEndpoints:
    """Tests for /api/weights and /api/meals."""

    def test_weight_trend(self, client):
        """Trend reflects logged weights."""
        client.post("/api/weights", json={"weight": 80, "date": "2023-06-01"}, headers=U1)
        client.post("/api/weights", json={"weight": 79, "date": "2023-06-08"}, headers=U1)

        data = client.get("/api/weights/trend", headers=U1).json()
        assert data["change"] == -1

    def test_meal_summary(self, client):
        """Nutrition summary for a date."""
        client.post(
            "/api/meals",
            json={"foodName": "Oats", "mealType": "breakfast", "protein": 10, "carbs": 50, "fat": 5, "date": "2023-06-01T08:00:00Z"},
            headers=U1,
        )
        data = client.get("/api/meals/summary?date=2023-06-01", headers=U1).json()

        assert data["totalCalories"] == 285
        assert data["mealCount"] == 1

    def test_meal_summary_bad_date(self, client):
        """Malformed dates are 400."""
        assert client.get("/api/meals/summary?date=June", headers=U1).status_code == 400


class TestProfileEndpoints:
    """Tests for /api/profile."""

    PROFILE = {"name": "User One", "email": "u1@example.com"}

    def test_create_and_get_own(self, client):
        """Created profile is returned for the owner."""
        created = client.post("/api/profile", json=self.PROFILE, headers=U1)
        assert created.status_code == 201
        assert created.json()["id"] == "u1"

        assert client.get("/api/profile", headers=U1).json()["name"] == "User One"

    def test_own_profile_falls_back_to_claims(self, client):
        """Without a profile, identity claims are returned."""
        data = client.get("/api/profile", headers=U1).json()

        assert data["id"] == "u1"
        assert data["email"] == "u1@example.com"
        assert data["name"] == "User One"

    def test_duplicate_profile_conflicts(self, client):
        """A second profile for the same user is 409."""
        client.post("/api/profile", json=self.PROFILE, headers=U1)
        response = client.post("/api/profile", json=self.PROFILE, headers=U1)

        assert response.status_code == 409
        assert response.json()["error"] == "Conflict"

    def test_public_lookup(self, client):
        """Anyone can read a profile by id."""
        client.post("/api/profile", json=self.PROFILE, headers=U1)
        assert client.get("/api/profile/u1", headers=U2).status_code == 200
        assert client.get("/api/profile/nobody", headers=U2).status_code == 404

    def test_update_other_profile_forbidden(self, client):
        """Editing someone else's profile is 403."""
        client.post("/api/profile", json=self.PROFILE, headers=U1)

        response = client.put("/api/profile/u1", json={"bio": "hacked"}, headers=U2)
        assert response.status_code == 403
        assert response.json()["error"] == "Forbidden"
        assert client.delete("/api/profile/u1", headers=U2).status_code == 403

    def test_update_and_delete_own(self, client):
        """Owners can edit and delete their profile."""
        client.post("/api/profile", json=self.PROFILE, headers=U1)

        updated = client.put("/api/profile/u1", json={"preferences": {"theme": "dark"}}, headers=U1)
        assert updated.json()["preferences"]["theme"] == "dark"
        assert client.delete("/api/profile/u1", headers=U1).status_code == 204
        assert client.delete("/api/profile/u1", headers=U1).status_code == 404

    def test_avatar_upload(self, client):
        """Avatar upload returns the new URL and profile."""
        client.post("/api/profile", json=self.PROFILE, headers=U1)
        response = client.post(
            "/api/profile/u1/avatar",
            files={"avatar": ("me.png", PNG, "image/png")},
            headers=U1,
        )

        data = response.json()
        assert response.status_code == 200
        assert data["success"] is True
        assert data["profile"]["avatarUrl"] == data["avatarUrl"]

    def test_avatar_for_other_user_forbidden(self, client):
        """Uploading someone else's avatar is 403."""
        response = client.post(
            "/api/profile/u1/avatar",
            files={"avatar": ("me.png", PNG, "image/png")},
            headers=U2,
        )
        assert response.status_code == 403


class TestErrorHandling:
    """Tests for the catch-all error mapping."""

    def test_unexpected_error_is_500(self, client, services):
        """Unexpected failures are 500 with the message passed through."""

        async def boom(*args, **kwargs):
            raise RuntimeError("database exploded")

        services.activities.list = boom
        response = client.get("/api/activities", headers=U1)

        assert response.status_code == 500
        assert response.json() == {"error": "InternalServerError", "message": "database exploded"}
