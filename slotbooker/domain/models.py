"""
Domain models for availability templates, booked slots and participants.

Dates and clock times are kept as two separate values on purpose: the
creator's calendar is the only timezone context, so nothing here is ever
turned into an absolute instant.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum, IntEnum
from typing import Iterable, List, Mapping, Tuple

import pendulum

from .exceptions import ValidationError

MIN_DURATION_MINUTES = 5
MAX_DURATION_MINUTES = 480
LAST_MINUTE_OF_DAY = 1439

_TIME_PATTERN = re.compile(r"^([0-1]?[0-9]|2[0-3]):([0-5][0-9])$")


class Weekday(IntEnum):
    """Day of week, numbered from Sunday like the weekly template."""

    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def from_name(cls, name: str) -> "Weekday":
        try:
            return cls[name.strip().upper()]
        except KeyError:
            raise ValidationError(f"Unknown weekday: '{name}'") from None

    @classmethod
    def from_date(cls, value: date) -> "Weekday":
        # date.weekday() counts from Monday
        return cls((value.weekday() + 1) % 7)


class MeetingKind(str, Enum):
    VIDEO = "video"
    IN_PERSON = "in-person"
    PHONE = "phone"


class TemplateStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DELETED = "deleted"


class SlotStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    MISSED = "missed"
    DELETED = "deleted"


def parse_time(value: str | time) -> time:
    """
    Parse a wall-clock time in ``H:MM`` or ``HH:MM`` form.

    Raises:
        ValidationError: If the value is not a valid clock time
    """
    if isinstance(value, time):
        return time(hour=value.hour, minute=value.minute)

    match = _TIME_PATTERN.match(str(value).strip())
    if not match:
        raise ValidationError(f"'{value}' is not a valid time format (HH:MM)")

    return time(hour=int(match.group(1)), minute=int(match.group(2)))


def parse_date(value: str | date) -> date:
    """
    Parse a calendar date in ``YYYY-MM-DD`` form.

    A trailing ``T...`` time part is ignored so ISO timestamps sent by
    booking pages resolve to their calendar day.

    Raises:
        ValidationError: If the value is not a valid date
    """
    if isinstance(value, datetime):
        return date(value.year, value.month, value.day)
    if isinstance(value, date):
        return date(value.year, value.month, value.day)

    raw = str(value).strip().split("T")[0]
    try:
        parsed = pendulum.from_format(raw, "YYYY-MM-DD")
    except ValueError:
        raise ValidationError(f"'{value}' is not a valid date format (YYYY-MM-DD)") from None

    return date(parsed.year, parsed.month, parsed.day)


def format_time(value: time) -> str:
    return f"{value.hour:02d}:{value.minute:02d}"


def time_to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def minutes_to_time(minutes: int) -> time:
    return time(hour=minutes // 60, minute=minutes % 60)


@dataclass(frozen=True)
class Interval:
    """
    An open window on one weekday, in minutes of day.

    Invariant: 0 <= start < end <= 1439.
    """
    start: int
    end: int

    def __post_init__(self):
        for bound in (self.start, self.end):
            if not 0 <= bound <= LAST_MINUTE_OF_DAY:
                raise ValidationError(
                    f"Interval bound {bound} must be between 0 and {LAST_MINUTE_OF_DAY} minutes"
                )
        if self.start >= self.end:
            raise ValidationError(
                f"Interval start {format_time(minutes_to_time(self.start))} must be before "
                f"end {format_time(minutes_to_time(self.end))}"
            )

    @classmethod
    def from_strings(cls, start: str, end: str) -> "Interval":
        return cls(
            start=time_to_minutes(parse_time(start)),
            end=time_to_minutes(parse_time(end)),
        )

    def fits(self, start: int, duration_minutes: int) -> bool:
        """Check whether a meeting starting at ``start`` ends inside this window."""
        return self.start <= start and start + duration_minutes <= self.end

    def __str__(self) -> str:
        return f"{format_time(minutes_to_time(self.start))}-{format_time(minutes_to_time(self.end))}"


def normalize_intervals(intervals: Iterable[Interval]) -> Tuple[Interval, ...]:
    """
    Sort intervals by start and merge overlapping ones.

    Touching intervals (one ends where the next starts) stay separate so
    the slot walk restarts at the second start.

    Example: [10:00-11:00, 09:00-10:30] -> [09:00-11:00]
    """
    ordered = sorted(intervals, key=lambda interval: (interval.start, interval.end))
    if not ordered:
        return ()

    merged: List[Interval] = [ordered[0]]
    for current in ordered[1:]:
        last = merged[-1]
        if current.start < last.end:
            merged[-1] = Interval(start=last.start, end=max(last.end, current.end))
        else:
            merged.append(current)

    return tuple(merged)


@dataclass(frozen=True)
class DayAvailability:
    """Availability of a single weekday: an enabled flag and its open intervals."""
    enabled: bool = False
    intervals: Tuple[Interval, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "intervals", normalize_intervals(self.intervals))


@dataclass(frozen=True)
class WeeklyAvailability:
    """
    The recurring weekly schedule of a meeting template.

    Days missing from ``days`` are closed.
    """
    days: Mapping[Weekday, DayAvailability] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(
            self,
            "days",
            {weekday: self.days.get(weekday, DayAvailability()) for weekday in Weekday},
        )

    def day(self, weekday: Weekday) -> DayAvailability:
        return self.days[weekday]

    def is_day_open(self, weekday: Weekday) -> bool:
        return self.days[weekday].enabled

    def intervals_for(self, weekday: Weekday) -> Tuple[Interval, ...]:
        return self.days[weekday].intervals

    def open_days(self) -> List[Weekday]:
        return [weekday for weekday in Weekday if self.is_day_open(weekday)]


@dataclass
class BookedSlot:
    """A concrete (date, time) booking owned by one meeting template."""
    id: str
    date: date
    time: time
    participant_id: str
    status: SlotStatus = SlotStatus.PENDING
    notification_read: bool = False
    created_at: datetime | None = None

    @property
    def key(self) -> Tuple[date, time]:
        return (self.date, self.time)

    @property
    def is_active(self) -> bool:
        return self.status != SlotStatus.DELETED

    def format_display(self) -> str:
        """
        Format the slot for display.
        Format: Weekday, YYYY-MM-DD HH:MM (status)
        """
        weekday = Weekday.from_date(self.date).label.capitalize()
        return f"{weekday}, {self.date.isoformat()} {format_time(self.time)} ({self.status.value})"


@dataclass
class Participant:
    """A person who books meetings, identified by email."""
    id: str
    full_name: str
    email: str
    phone: str | None = None
    creator_id: str | None = None
    meeting_ids: List[str] = field(default_factory=list)
    last_meeting: datetime | None = None

    def __post_init__(self):
        self.email = self.email.strip().lower()

    def record_meeting(self, meeting_id: str, when: datetime) -> None:
        if meeting_id not in self.meeting_ids:
            self.meeting_ids.append(meeting_id)
        self.last_meeting = when

