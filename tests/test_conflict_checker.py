"""
Tests for the conflict checker.
"""

from datetime import date, time

import pendulum
import pytest

from slotbooker.domain.conflict_checker import ConflictChecker, initial_status_for
from slotbooker.domain.exceptions import ConflictError, ConflictReason
from slotbooker.domain.models import (
    BookedSlot,
    DayAvailability,
    Interval,
    MeetingKind,
    SlotStatus,
    Weekday,
    WeeklyAvailability,
)
from slotbooker.domain.template import MeetingTemplate

NOW = pendulum.datetime(2024, 11, 20, 12, 0, tz="Europe/Berlin")  # Wednesday
MONDAY = date(2024, 11, 25)
PAST_MONDAY = date(2024, 11, 18)
TUESDAY = date(2024, 11, 26)


def _template(duration: int = 20, monday_enabled: bool = True) -> MeetingTemplate:
    return MeetingTemplate(
        id="m1",
        creator_id="creator-1",
        title="Consultation",
        duration_minutes=duration,
        kind=MeetingKind.PHONE,
        availability=WeeklyAvailability(
            days={
                Weekday.MONDAY: DayAvailability(
                    enabled=monday_enabled,
                    intervals=(
                        Interval.from_strings("09:00", "10:00"),
                        Interval.from_strings("14:00", "16:00"),
                    ),
                )
            }
        ),
    )


class TestConflictChecker:
    """Tests for ConflictChecker.can_book."""

    def test_accepts_slot_inside_window(self):
        check = ConflictChecker().can_book(_template(), MONDAY, time(9, 40), NOW)

        assert check.ok
        assert check.reason is None
        assert check.initial_status == SlotStatus.PENDING

    def test_accepts_slot_in_second_interval(self):
        check = ConflictChecker().can_book(_template(), MONDAY, time(15, 40), NOW)

        assert check.ok

    def test_rejects_closed_day(self):
        check = ConflictChecker().can_book(_template(), TUESDAY, time(9, 0), NOW)

        assert not check.ok
        assert check.reason == ConflictReason.DAY_CLOSED

    def test_disabled_day_wins_over_intervals(self):
        """A disabled day is closed even though it still lists intervals."""
        check = ConflictChecker().can_book(_template(monday_enabled=False), MONDAY, time(9, 0), NOW)

        assert check.reason == ConflictReason.DAY_CLOSED

    def test_rejects_meeting_running_past_window(self):
        """09:50 + 20 minutes ends at 10:10, after the 10:00 close."""
        check = ConflictChecker().can_book(_template(), MONDAY, time(9, 50), NOW)

        assert check.reason == ConflictReason.OUTSIDE_WINDOW

    def test_rejects_time_between_intervals(self):
        check = ConflictChecker().can_book(_template(), MONDAY, time(12, 0), NOW)

        assert check.reason == ConflictReason.OUTSIDE_WINDOW

    def test_meeting_may_not_span_touching_intervals(self):
        """09:00-10:00 plus 10:00-11:00 are two windows: 09:45 + 45 minutes fits neither."""
        template = _template(duration=45)
        template.availability = WeeklyAvailability(
            days={
                Weekday.MONDAY: DayAvailability(
                    enabled=True,
                    intervals=(Interval.from_strings("09:00", "10:00"), Interval.from_strings("10:00", "11:00")),
                )
            }
        )

        assert ConflictChecker().can_book(template, MONDAY, time(9, 45), NOW).reason == ConflictReason.OUTSIDE_WINDOW
        assert ConflictChecker().can_book(template, MONDAY, time(10, 0), NOW).ok

    def test_rejects_taken_slot(self):
        template = _template()
        template.ledger.append(BookedSlot(id="s1", date=MONDAY, time=time(9, 20), participant_id="p1"))

        check = ConflictChecker().can_book(template, MONDAY, time(9, 20), NOW)

        assert check.reason == ConflictReason.SLOT_TAKEN

    def test_window_is_checked_before_ledger(self):
        """First failure wins: a taken pair outside the window reports the window."""
        template = _template()
        template.ledger.append(BookedSlot(id="s1", date=MONDAY, time=time(9, 50), participant_id="p1"))

        check = ConflictChecker().can_book(template, MONDAY, time(9, 50), NOW)

        assert check.reason == ConflictReason.OUTSIDE_WINDOW

    def test_deleted_slot_does_not_block(self):
        template = _template()
        template.ledger.append(
            BookedSlot(id="s1", date=MONDAY, time=time(9, 20), participant_id="p1", status=SlotStatus.DELETED)
        )

        assert ConflictChecker().can_book(template, MONDAY, time(9, 20), NOW).ok

    @pytest.mark.parametrize("status", [SlotStatus.COMPLETED, SlotStatus.MISSED])
    def test_completed_and_missed_slots_stay_occupied(self, status):
        template = _template()
        template.ledger.append(
            BookedSlot(id="s1", date=MONDAY, time=time(9, 20), participant_id="p1", status=status)
        )

        check = ConflictChecker().can_book(template, MONDAY, time(9, 20), NOW)

        assert check.reason == ConflictReason.SLOT_TAKEN

    def test_past_slot_is_classified_completed(self):
        check = ConflictChecker().can_book(_template(), PAST_MONDAY, time(9, 0), NOW)

        assert check.ok
        assert check.initial_status == SlotStatus.COMPLETED

    def test_ensure_bookable_raises_with_reason(self):
        with pytest.raises(ConflictError) as exc_info:
            ConflictChecker().ensure_bookable(_template(), TUESDAY, time(9, 0), NOW)

        assert exc_info.value.reason == ConflictReason.DAY_CLOSED
        assert exc_info.value.code == "day_closed"

    def test_ensure_bookable_returns_initial_status(self):
        assert ConflictChecker().ensure_bookable(_template(), MONDAY, time(9, 0), NOW) == SlotStatus.PENDING


class TestInitialStatus:
    """Tests for retroactive classification."""

    def test_same_minute_later_second_is_past(self):
        now = pendulum.datetime(2024, 11, 25, 9, 0, 30, tz="Europe/Berlin")

        assert initial_status_for(MONDAY, time(9, 0), now) == SlotStatus.COMPLETED

    def test_exact_moment_is_pending(self):
        now = pendulum.datetime(2024, 11, 25, 9, 0, 0, tz="Europe/Berlin")

        assert initial_status_for(MONDAY, time(9, 0), now) == SlotStatus.PENDING

    def test_later_today_is_pending(self):
        now = pendulum.datetime(2024, 11, 25, 8, 59, tz="Europe/Berlin")

        assert initial_status_for(MONDAY, time(9, 0), now) == SlotStatus.PENDING
