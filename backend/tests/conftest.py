"""Shared fixtures: in-memory store, service graph and bearer tokens."""

import pytest
from jose import jwt

from lifetracker.shell.config import Settings
from lifetracker.shell.store import DocumentStore
from lifetracker.shell.wiring import build_services


TOKEN_SECRET = "test-secret"


def make_token(sub: str | None = None, **claims) -> str:
    """Bearer token with the given claims. Signature is never checked."""
    if sub is not None:
        claims["sub"] = sub
    return jwt.encode(claims, TOKEN_SECRET, algorithm="HS256")


def auth_headers(user_id: str, **claims) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id, **claims)}"}


@pytest.fixture
def settings():
    """Development settings without MCP and with in-memory storage."""
    return Settings(use_memory_store=True, mcp_enabled=False)


@pytest.fixture
def store():
    return DocumentStore.in_memory()


@pytest.fixture
def services(settings, store):
    return build_services(settings, store)
