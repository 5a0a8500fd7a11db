"""
Input payloads validated with Pydantic and converted to domain objects.

Field aliases accept the camelCase names booking pages send
(``duration``, ``type``, ``timeSlots``, ``name``).
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from .domain.exceptions import ValidationError
from .domain.models import (
    MAX_DURATION_MINUTES,
    MIN_DURATION_MINUTES,
    DayAvailability,
    Interval,
    MeetingKind,
    Weekday,
    WeeklyAvailability,
    format_time,
    parse_time,
)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

PayloadT = TypeVar("PayloadT", bound=BaseModel)


def _normalize_email(value: str) -> str:
    email = value.strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValueError(f"{value} is not a valid email address")
    return email


class IntervalSchema(BaseModel):
    """One open window, as HH:MM strings."""
    start: str
    end: str

    @field_validator("start", "end")
    @classmethod
    def validate_clock(cls, value: str) -> str:
        return format_time(parse_time(value))

    @model_validator(mode="after")
    def validate_order(self) -> "IntervalSchema":
        self.to_domain()
        return self

    def to_domain(self) -> Interval:
        return Interval.from_strings(self.start, self.end)


class DaySchema(BaseModel):
    """Availability of one weekday."""
    enabled: bool = False
    intervals: List[IntervalSchema] = Field(
        default_factory=list,
        validation_alias=AliasChoices("intervals", "timeSlots", "time_slots"),
    )

    def to_domain(self) -> DayAvailability:
        return DayAvailability(
            enabled=self.enabled,
            intervals=tuple(interval.to_domain() for interval in self.intervals),
        )


class TemplatePayload(BaseModel):
    """Creator input for creating or fully replacing a meeting template."""
    model_config = ConfigDict(populate_by_name=True)

    title: str
    duration_minutes: int = Field(
        ge=MIN_DURATION_MINUTES,
        le=MAX_DURATION_MINUTES,
        validation_alias=AliasChoices("duration_minutes", "duration"),
    )
    kind: MeetingKind = Field(validation_alias=AliasChoices("kind", "type"))
    availability: Dict[str, DaySchema]

    @field_validator("title")
    @classmethod
    def validate_title(cls, value: str) -> str:
        """Reject blank titles."""
        if not value.strip():
            raise ValueError("Meeting title is required")
        return value.strip()

    @field_validator("availability")
    @classmethod
    def validate_weekdays(cls, value: Dict[str, DaySchema]) -> Dict[str, DaySchema]:
        """Ensure every key names a weekday, normalised to lowercase."""
        normalized: Dict[str, DaySchema] = {}
        for name, day in value.items():
            normalized[Weekday.from_name(name).label] = day
        return normalized

    def to_weekly_availability(self) -> WeeklyAvailability:
        return WeeklyAvailability(
            days={Weekday.from_name(name): day.to_domain() for name, day in self.availability.items()}
        )


class ParticipantPayload(BaseModel):
    """Identity of a person booking a meeting."""
    model_config = ConfigDict(populate_by_name=True)

    full_name: str = Field(validation_alias=AliasChoices("full_name", "fullName", "name"))
    email: str
    phone: Optional[str] = None

    @field_validator("full_name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Full name is required")
        return value.strip()

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        """Lowercase and sanity-check the address."""
        return _normalize_email(value)


class ParticipantUpdatePayload(BaseModel):
    """Partial update of a participant; omitted fields keep their value."""
    model_config = ConfigDict(populate_by_name=True)

    full_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("full_name", "fullName", "name"))
    email: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("full_name")
    @classmethod
    def validate_name(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            raise ValueError("Full name cannot be blank")
        return value.strip() if value is not None else None

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return _normalize_email(value)


def parse_payload(model: Type[PayloadT], data: Any) -> PayloadT:
    """
    Validate raw input into a payload model.

    Raises:
        ValidationError: With the pydantic error list as ``details``
    """
    if isinstance(data, model):
        return data

    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        fields = sorted({".".join(str(part) for part in error["loc"]) for error in exc.errors()})
        raise ValidationError(
            f"Invalid {model.__name__}: {', '.join(fields) or 'payload'}",
            details=exc.errors(include_url=False),
        ) from exc
