"""
Domain layer - Pure business logic without I/O.
"""

from .conflict_checker import BookingCheck, ConflictChecker
from .exceptions import (
    BookingError,
    ConflictError,
    ConflictReason,
    ForbiddenError,
    NotFoundError,
    StorageError,
    SystemFailure,
    ValidationError,
)
from .ledger import BookingLedger
from .models import (
    BookedSlot,
    DayAvailability,
    Interval,
    MeetingKind,
    Participant,
    SlotStatus,
    TemplateStatus,
    Weekday,
    WeeklyAvailability,
)
from .slot_generator import SlotGenerator, generate_slots
from .template import MeetingTemplate

__all__ = [
    "BookedSlot",
    "BookingCheck",
    "BookingError",
    "BookingLedger",
    "ConflictChecker",
    "ConflictError",
    "ConflictReason",
    "DayAvailability",
    "ForbiddenError",
    "Interval",
    "MeetingKind",
    "MeetingTemplate",
    "NotFoundError",
    "Participant",
    "SlotGenerator",
    "SlotStatus",
    "StorageError",
    "SystemFailure",
    "TemplateStatus",
    "ValidationError",
    "Weekday",
    "WeeklyAvailability",
    "generate_slots",
]
