"""Authentication - Identity extraction from bearer tokens.

Tokens are issued and their signatures verified upstream by the identity
provider's gateway. This module only reads the claims to find the owner id.
"""

import logging
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any

from jose import JWTError, jwt


logger = logging.getLogger(__name__)

# Owner id of the request being served, for code without access to the request
current_owner_id: ContextVar[str | None] = ContextVar("current_owner_id", default=None)


@dataclass(frozen=True)
class RequestContext:
    """Who is making the request.

    Attributes:
        owner_id: Validated owner identity used as partition key
        email: Email claim, if present
        claims: All token claims (empty for the development placeholder)
        is_placeholder: True when the development identity was substituted
    """

    owner_id: str
    email: str | None = None
    claims: dict[str, Any] = field(default_factory=dict)
    is_placeholder: bool = False


def extract_bearer_token(authorization: str | None) -> str | None:
    """Get the token from an Authorization header value.

    Args:
        authorization: Header value, e.g. "Bearer eyJ..."

    Returns:
        The token, or None when the header is missing or not a bearer token
    """
    if not authorization:
        return None

    parts = authorization.strip().split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


def read_claims(token: str) -> dict[str, Any] | None:
    """Decode token claims without verifying the signature.

    Returns:
        Claims dict, or None when the token is not a well-formed JWT
    """
    try:
        return jwt.get_unverified_claims(token)
    except JWTError as e:
        logger.warning("Unreadable bearer token: %s", str(e))
        return None


def owner_from_claims(claims: dict[str, Any]) -> str | None:
    """Owner id from the `sub` claim, falling back to `oid`."""
    for key in ("sub", "oid"):
        value = claims.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def resolve_context(
    authorization: str | None,
    allow_dev_identity: bool = False,
    dev_user_id: str = "dev-user-123",
) -> RequestContext | None:
    """Build the request context from the Authorization header.

    Args:
        authorization: Authorization header value
        allow_dev_identity: Substitute dev_user_id when no identity is present
        dev_user_id: Placeholder owner id for development

    Returns:
        RequestContext, or None when the caller is unauthenticated and no
        placeholder is allowed
    """
    token = extract_bearer_token(authorization)
    claims = read_claims(token) if token else None
    owner_id = owner_from_claims(claims) if claims else None

    if owner_id is not None:
        email = claims.get("email") or claims.get("preferred_username")
        return RequestContext(owner_id=owner_id, email=email, claims=claims)

    if allow_dev_identity:
        logger.warning("No identity on request; using development user %s", dev_user_id[:8])
        return RequestContext(owner_id=dev_user_id, is_placeholder=True)

    return None
