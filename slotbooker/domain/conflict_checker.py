"""
Decides whether a requested (date, time) can be booked on a template.

Checks run in a fixed order and the first failure wins:
1. the weekday is enabled
2. the meeting fits inside one of the day's intervals
3. no active booking already holds the same (date, time)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time

from .exceptions import ConflictError, ConflictReason
from .models import SlotStatus, Weekday, time_to_minutes
from .template import MeetingTemplate


@dataclass(frozen=True)
class BookingCheck:
    """
    Outcome of a conflict check.

    Exactly one of ``reason`` and ``initial_status`` is set.
    """
    reason: ConflictReason | None = None
    initial_status: SlotStatus | None = None

    @property
    def ok(self) -> bool:
        return self.reason is None

    @classmethod
    def rejected(cls, reason: ConflictReason) -> "BookingCheck":
        return cls(reason=reason)

    @classmethod
    def accepted(cls, initial_status: SlotStatus) -> "BookingCheck":
        return cls(initial_status=initial_status)


def initial_status_for(slot_date: date, slot_time: time, now: datetime) -> SlotStatus:
    """
    Classify a new booking against the creator-local ``now``.

    A slot strictly in the past is recorded as ``completed`` so backfilled
    meetings do not linger as pending.
    """
    current = (date(now.year, now.month, now.day), time(now.hour, now.minute, now.second))
    if (slot_date, slot_time) < current:
        return SlotStatus.COMPLETED
    return SlotStatus.PENDING


class ConflictChecker:
    """Pure booking validation against a template's schedule and ledger."""

    def can_book(
        self,
        template: MeetingTemplate,
        slot_date: date,
        slot_time: time,
        now: datetime,
    ) -> BookingCheck:
        """
        Check a booking request without raising.

        Args:
            template: The meeting template being booked
            slot_date: Requested calendar date (creator-local)
            slot_time: Requested start time (creator-local)
            now: Current creator-local wall clock

        Returns:
            BookingCheck with either a rejection reason or the initial status
        """
        weekday = Weekday.from_date(slot_date)

        # Step 1: the day must be open
        if not template.availability.is_day_open(weekday):
            return BookingCheck.rejected(ConflictReason.DAY_CLOSED)

        # Step 2: the whole meeting must fit in one interval
        requested_start = time_to_minutes(slot_time)
        fits = any(
            interval.fits(requested_start, template.duration_minutes)
            for interval in template.availability.intervals_for(weekday)
        )
        if not fits:
            return BookingCheck.rejected(ConflictReason.OUTSIDE_WINDOW)

        # Step 3: no active booking may hold the same pair
        if template.ledger.is_taken(slot_date, slot_time):
            return BookingCheck.rejected(ConflictReason.SLOT_TAKEN)

        return BookingCheck.accepted(initial_status_for(slot_date, slot_time, now))

    def ensure_bookable(
        self,
        template: MeetingTemplate,
        slot_date: date,
        slot_time: time,
        now: datetime,
    ) -> SlotStatus:
        """
        Same as ``can_book`` but raises on rejection.

        Raises:
            ConflictError: With the first failing reason
        """
        check = self.can_book(template, slot_date, slot_time, now)
        if not check.ok:
            raise ConflictError(check.reason)
        return check.initial_status
