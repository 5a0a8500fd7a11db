"""
Domain-specific exception hierarchy for the booking engine.

Every business outcome carries a stable ``code`` so callers can explain a
rejection without parsing messages.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, List, Optional


class ConflictReason(str, Enum):
    """Why a booking request cannot be satisfied."""

    DAY_CLOSED = "day_closed"
    OUTSIDE_WINDOW = "outside_window"
    SLOT_TAKEN = "slot_taken"


class BookingError(Exception):
    """Base class for all application-level errors."""

    code = "booking_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BookingError, ValueError):
    """Raised for malformed input: missing fields, bad duration, bad interval."""

    code = "validation_error"

    def __init__(self, message: str, details: Optional[List[Any]] = None):
        super().__init__(message)
        self.details = details or []


class NotFoundError(BookingError):
    """Raised when a template, participant or slot does not exist."""

    code = "not_found"

    def __init__(self, entity: str, identifier: str):
        super().__init__(f"{entity} not found: {identifier}")
        self.entity = entity
        self.identifier = identifier


class ForbiddenError(BookingError):
    """Raised when the actor does not own the template it tries to change."""

    code = "forbidden"


class ConflictError(BookingError):
    """Raised when a booking collides with the schedule or another booking."""

    def __init__(self, reason: ConflictReason, message: str | None = None):
        super().__init__(message or _CONFLICT_MESSAGES[reason])
        self.reason = reason

    @property
    def code(self) -> str:  # type: ignore[override]
        return self.reason.value


class SystemFailure(BookingError):
    """Raised when a collaborator fails. The message never leaks internals."""

    code = "system_failure"

    def __init__(self, message: str = "The booking system is temporarily unavailable"):
        super().__init__(message)


class StorageError(Exception):
    """Raised by persistence adapters when the backing store cannot be used."""


_CONFLICT_MESSAGES = {
    ConflictReason.DAY_CLOSED: "The selected day is not available",
    ConflictReason.OUTSIDE_WINDOW: "The selected time is outside the available hours",
    ConflictReason.SLOT_TAKEN: "The selected time is already booked",
}
