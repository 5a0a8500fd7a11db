"""
The meeting template aggregate: a bookable meeting type, its weekly
availability and its embedded booking ledger.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from .exceptions import ValidationError
from .ledger import BookingLedger
from .models import (
    MAX_DURATION_MINUTES,
    MIN_DURATION_MINUTES,
    MeetingKind,
    TemplateStatus,
    WeeklyAvailability,
)


def validate_duration(duration_minutes: int) -> int:
    """Ensure a meeting lasts between 5 minutes and 8 hours."""
    if not MIN_DURATION_MINUTES <= duration_minutes <= MAX_DURATION_MINUTES:
        raise ValidationError(
            f"Duration must be between {MIN_DURATION_MINUTES} and "
            f"{MAX_DURATION_MINUTES} minutes, got {duration_minutes}"
        )
    return duration_minutes


@dataclass
class MeetingTemplate:
    """
    A creator's recurring weekly availability for one meeting type.

    Templates are soft-deleted through ``status`` so the bookings they hold
    stay readable.
    """
    id: str
    creator_id: str
    title: str
    duration_minutes: int
    kind: MeetingKind
    availability: WeeklyAvailability
    status: TemplateStatus = TemplateStatus.ACTIVE
    ledger: BookingLedger = field(default_factory=BookingLedger)
    notification_read: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self):
        if not self.title or not self.title.strip():
            raise ValidationError("Meeting title is required")
        self.title = self.title.strip()
        validate_duration(self.duration_minutes)

    @property
    def share_token(self) -> str:
        """The public booking-page identifier, which is the template id itself."""
        return self.id

    @property
    def is_bookable(self) -> bool:
        return self.status == TemplateStatus.ACTIVE

    def is_owned_by(self, actor_id: str) -> bool:
        return self.creator_id == actor_id

    def replace_schedule(
        self,
        *,
        title: str,
        duration_minutes: int,
        kind: MeetingKind,
        availability: WeeklyAvailability,
        updated_at: datetime | None = None,
    ) -> None:
        """Fully replace the core fields and weekly availability."""
        if not title or not title.strip():
            raise ValidationError("Meeting title is required")
        validate_duration(duration_minutes)

        self.title = title.strip()
        self.duration_minutes = duration_minutes
        self.kind = kind
        self.availability = availability
        self.updated_at = updated_at
