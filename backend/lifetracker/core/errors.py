"""Error taxonomy shared by services and the HTTP layer.

Services return None/False for records that are absent or owned by someone
else. These exceptions are for everything else.
"""

from typing import Any


class LifeTrackerError(Exception):
    """Base class for errors with a known HTTP mapping."""

    status_code: int = 500
    error: str = "InternalServerError"

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.error, "message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(LifeTrackerError):
    """Malformed or missing client input."""

    status_code = 400
    error = "ValidationError"


class Unauthorized(LifeTrackerError):
    status_code = 401
    error = "Unauthorized"


class Forbidden(LifeTrackerError):
    """Authenticated identity is not the owner of an exclusively-owned resource."""

    status_code = 403
    error = "Forbidden"


class NotFound(LifeTrackerError):
    status_code = 404
    error = "NotFound"


class Conflict(LifeTrackerError):
    """A document with the same id already exists."""

    status_code = 409
    error = "Conflict"


class StorageUnavailable(LifeTrackerError):
    """Neither the document database nor a permitted fallback is reachable."""

    status_code = 500
    error = "StorageUnavailable"


class ServiceUnavailable(LifeTrackerError):
    """An optional feature (search, advanced insights) is switched off."""

    status_code = 503
    error = "ServiceUnavailable"
