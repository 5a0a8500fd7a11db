"""
Tests for slot generation.
"""

from datetime import date, time

import pendulum
import pytest

from slotbooker.domain.models import (
    BookedSlot,
    DayAvailability,
    Interval,
    MeetingKind,
    SlotStatus,
    Weekday,
    WeeklyAvailability,
    minutes_to_time,
)
from slotbooker.domain.slot_generator import SlotGenerator, generate_slots
from slotbooker.domain.template import MeetingTemplate

MONDAY = date(2024, 11, 25)
TUESDAY = date(2024, 11, 26)


def _monday_template(duration: int = 30) -> MeetingTemplate:
    """Monday 09:00-12:00, everything else closed."""
    return MeetingTemplate(
        id="m1",
        creator_id="creator-1",
        title="Intro call",
        duration_minutes=duration,
        kind=MeetingKind.VIDEO,
        availability=WeeklyAvailability(
            days={
                Weekday.MONDAY: DayAvailability(
                    enabled=True,
                    intervals=(Interval.from_strings("09:00", "12:00"),),
                )
            }
        ),
    )


class TestGenerateSlots:
    """Tests for the pure generate_slots function."""

    def test_twenty_minute_slots_in_one_hour(self):
        """09:40 is the last start: 09:40 + 20 = 10:00 still fits."""
        slots = generate_slots([Interval(540, 600)], 20)

        assert slots == [540, 560, 580]

    def test_is_idempotent(self):
        intervals = [Interval(540, 600)]

        assert generate_slots(intervals, 20) == generate_slots(intervals, 20)

    def test_partial_tail_is_dropped(self):
        # 09:00-10:00 with 25 minutes: 09:00, 09:25; 09:50 would end at 10:15
        assert generate_slots([Interval(540, 600)], 25) == [540, 565]

    def test_interval_shorter_than_duration_yields_nothing(self):
        assert generate_slots([Interval(540, 560)], 30) == []

    def test_concatenates_in_interval_order(self):
        """Intervals are walked in the order given, without re-sorting."""
        intervals = [Interval(840, 900), Interval(540, 600)]

        assert generate_slots(intervals, 30) == [840, 870, 540, 570]

    def test_rejects_non_positive_duration(self):
        with pytest.raises(ValueError):
            generate_slots([Interval(540, 600)], 0)


class TestSlotGenerator:
    """Tests for day-level slot helpers."""

    def test_slots_for_open_day(self):
        slots = SlotGenerator().slots_for_date(_monday_template(), MONDAY)

        assert slots[0] == time(9, 0)
        assert slots[-1] == time(11, 30)
        assert time(10, 30) in slots
        assert len(slots) == 6

    def test_slots_for_closed_day(self):
        assert SlotGenerator().slots_for_date(_monday_template(), TUESDAY) == []

    def test_open_slots_skip_booked_ones(self):
        template = _monday_template()
        template.ledger.append(BookedSlot(id="s1", date=MONDAY, time=time(10, 30), participant_id="p1"))
        template.ledger.append(
            BookedSlot(id="s2", date=MONDAY, time=time(11, 0), participant_id="p2", status=SlotStatus.DELETED)
        )

        slots = SlotGenerator().open_slots_for_date(template, MONDAY)

        assert time(10, 30) not in slots
        assert time(11, 0) in slots
        assert len(slots) == 5

    def test_open_slots_drop_past_times_today(self):
        now = pendulum.datetime(2024, 11, 25, 10, 15, tz="Europe/Berlin")

        slots = SlotGenerator().open_slots_for_date(_monday_template(), MONDAY, now=now)

        assert slots == [minutes_to_time(minute) for minute in (630, 660, 690)]

    def test_open_slots_for_past_day_are_empty(self):
        now = pendulum.datetime(2024, 11, 26, 8, 0, tz="Europe/Berlin")

        assert SlotGenerator().open_slots_for_date(_monday_template(), MONDAY, now=now) == []

    def test_open_slots_for_future_day_ignore_clock(self):
        now = pendulum.datetime(2024, 11, 20, 23, 0, tz="Europe/Berlin")

        assert len(SlotGenerator().open_slots_for_date(_monday_template(), MONDAY, now=now)) == 6

    def test_touching_intervals_walk_separately(self):
        """09:00-10:00 and 10:00-11:00 with 45 minutes: the walk restarts at 10:00."""
        template = _monday_template(duration=45)
        template.availability = WeeklyAvailability(
            days={
                Weekday.MONDAY: DayAvailability(
                    enabled=True,
                    intervals=(Interval.from_strings("09:00", "10:00"), Interval.from_strings("10:00", "11:00")),
                )
            }
        )

        assert SlotGenerator().slots_for_date(template, MONDAY) == [time(9, 0), time(10, 0)]
