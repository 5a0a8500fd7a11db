"""
Core logic for turning a weekly template into bookable start times.

Pure domain logic without any external dependencies (no database, no I/O).
"""

from __future__ import annotations

from datetime import date, datetime, time
from typing import List, Sequence

from .models import Interval, Weekday, minutes_to_time, time_to_minutes
from .template import MeetingTemplate


def generate_slots(intervals: Sequence[Interval], duration_minutes: int) -> List[int]:
    """
    Generate candidate start times, in minutes of day, for one day.

    Each interval is walked in fixed steps of ``duration_minutes`` from its
    start; a start ``t`` is emitted while ``t + duration_minutes <= end``.
    Results are concatenated in interval order.

    Example:
    Interval: 09:00 - 10:00, duration 20
    Result: [09:00, 09:20, 09:40]
    """
    if duration_minutes <= 0:
        raise ValueError(f"duration_minutes must be positive, got {duration_minutes}")

    starts: List[int] = []

    for interval in intervals:
        current = interval.start
        while current + duration_minutes <= interval.end:
            starts.append(current)
            current += duration_minutes

    return starts


class SlotGenerator:
    """
    Derives the bookable slots of a template for a given calendar day.

    Used by booking pages to display choices; booking itself only relies
    on the conflict checker.
    """

    def slots_for_date(self, template: MeetingTemplate, slot_date: date) -> List[time]:
        """
        All start times the template offers on ``slot_date``.

        Returns an empty list when the weekday is closed.
        """
        weekday = Weekday.from_date(slot_date)

        if not template.availability.is_day_open(weekday):
            return []

        return [
            minutes_to_time(start)
            for start in generate_slots(
                template.availability.intervals_for(weekday),
                template.duration_minutes,
            )
        ]

    def open_slots_for_date(
        self,
        template: MeetingTemplate,
        slot_date: date,
        now: datetime | None = None,
    ) -> List[time]:
        """
        Start times on ``slot_date`` that can still be booked.

        Slots occupied in the ledger are dropped. When ``now`` is given
        (creator-local wall clock), slots that are not after it are dropped too.
        """
        candidates = [
            slot_time for slot_time in self.slots_for_date(template, slot_date)
            if not template.ledger.is_taken(slot_date, slot_time)
        ]

        if now is None:
            return candidates

        today = date(now.year, now.month, now.day)
        if slot_date > today:
            return candidates
        if slot_date < today:
            return []

        current_minute = time_to_minutes(time(now.hour, now.minute))
        return [
            slot_time for slot_time in candidates
            if time_to_minutes(slot_time) > current_minute
        ]
