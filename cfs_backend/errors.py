"""
Error taxonomy.
ContestError subclasses carry an HTTP status and a stable client-facing error string;
api.py turns them into the response envelope. Store errors never leave the persistence layer.
"""
from __future__ import annotations

from typing import Any


# ---------- Domain / request errors ----------


class ContestError(Exception):
    """Base for errors that map onto a client-facing response."""

    status_code = 500
    error = "Internal server error"

    def __init__(self, message: str | None = None, details: dict[str, Any] | None = None) -> None:
        super().__init__(message or self.error)
        self.details = details


class ValidationError(ContestError):
    """Malformed, missing or out-of-range input. details maps field -> issues."""

    status_code = 400
    error = "Validation failed"


class Unauthorized(ContestError):
    status_code = 401
    error = "Unauthorized"


class Forbidden(ContestError):
    status_code = 403
    error = "Forbidden"


class NotFound(ContestError):
    status_code = 404
    error = "Contest not found"


class UserNotFound(NotFound):
    error = "User not found"


class InvalidState(ContestError):
    """Operation not legal for the contest's current status (e.g. deleting a live contest)."""

    status_code = 400
    error = "Can only delete draft contests"


class InvalidTransition(ContestError):
    """Requested status change is not in the transition table."""

    status_code = 400
    error = "Invalid status transition"


class ServiceUnavailable(ContestError):
    """Persistence store is down on a write path."""

    status_code = 503
    error = "Service unavailable"


class InternalError(ContestError):
    status_code = 500
    error = "Internal server error"


# ---------- Store errors (persistence boundary only) ----------


class StoreError(Exception):
    """Any failure inside a store adapter."""


class StoreUnavailableError(StoreError):
    """Raised deliberately by an adapter when the store cannot be opened or initialized."""
