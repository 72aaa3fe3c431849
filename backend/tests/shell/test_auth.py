"""Unit tests for auth module - pure functions only."""

from conftest import make_token

from lifetracker.shell.auth import (
    extract_bearer_token,
    owner_from_claims,
    read_claims,
    resolve_context,
)


class TestExtractBearerToken:
    """Tests for extract_bearer_token."""

    def test_bearer(self):
        """Token is taken from a Bearer header."""
        assert extract_bearer_token("Bearer abc.def.ghi") == "abc.def.ghi"

    def test_case_insensitive_scheme(self):
        """The scheme is matched case-insensitively."""
        assert extract_bearer_token("bearer abc") == "abc"

    def test_missing(self):
        """Missing or empty headers give None."""
        assert extract_bearer_token(None) is None
        assert extract_bearer_token("") is None

    def test_other_scheme(self):
        """Non-bearer schemes give None."""
        assert extract_bearer_token("Basic dXNlcjpwYXNz") is None


class TestReadClaims:
    """Tests for read_claims."""

    def test_reads_without_verifying(self):
        """Claims are decoded regardless of the signing key."""
        claims = read_claims(make_token("user-1", email="a@example.com"))
        assert claims["sub"] == "user-1"
        assert claims["email"] == "a@example.com"

    def test_garbage_token(self):
        """Malformed tokens give None."""
        assert read_claims("not-a-jwt") is None


class TestOwnerFromClaims:
    """Tests for owner_from_claims."""

    def test_prefers_sub(self):
        """sub wins over oid."""
        assert owner_from_claims({"sub": "s", "oid": "o"}) == "s"

    def test_falls_back_to_oid(self):
        """oid is used when sub is absent."""
        assert owner_from_claims({"oid": "o"}) == "o"

    def test_none_when_absent(self):
        """No identity claims give None."""
        assert owner_from_claims({"email": "a@example.com"}) is None


class TestResolveContext:
    """Tests for resolve_context."""

    def test_authenticated(self):
        """A valid token yields a real context."""
        context = resolve_context(f"Bearer {make_token('user-1', email='a@example.com')}")

        assert context.owner_id == "user-1"
        assert context.email == "a@example.com"
        assert context.is_placeholder is False

    def test_dev_placeholder(self):
        """Without identity, the dev user is substituted when allowed."""
        context = resolve_context(None, allow_dev_identity=True, dev_user_id="dev-user-123")

        assert context.owner_id == "dev-user-123"
        assert context.is_placeholder is True

    def test_token_without_identity_uses_placeholder(self):
        """Tokens lacking sub/oid count as no identity."""
        context = resolve_context(f"Bearer {make_token(name='x')}", allow_dev_identity=True)
        assert context.is_placeholder is True

    def test_rejected_without_placeholder(self):
        """Without identity and without placeholder, there is no context."""
        assert resolve_context(None, allow_dev_identity=False) is None
