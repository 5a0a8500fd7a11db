"""
JSON file persistence for templates and participants.

The whole store is one document::

    {"meetings": [...], "participants": [...]}

Records are (de)serialized through Pydantic models. Writes go to a
temporary file that then replaces the data file.
"""

from __future__ import annotations

import dataclasses
import datetime as dt
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ..domain.exceptions import ConflictError, StorageError, ValidationError
from ..domain.ledger import BookingLedger
from ..domain.models import (
    BookedSlot,
    MeetingKind,
    Participant,
    SlotStatus,
    TemplateStatus,
    Weekday,
    WeeklyAvailability,
    format_time,
    minutes_to_time,
)
from ..domain.template import MeetingTemplate
from ..schemas import DaySchema

logger = logging.getLogger(__name__)


class SlotRecord(BaseModel):
    id: str
    date: dt.date
    time: dt.time
    participant_id: str
    status: SlotStatus = SlotStatus.PENDING
    notification_read: bool = False
    created_at: Optional[dt.datetime] = None

    @classmethod
    def from_domain(cls, slot: BookedSlot) -> "SlotRecord":
        return cls(
            id=slot.id,
            date=slot.date,
            time=slot.time,
            participant_id=slot.participant_id,
            status=slot.status,
            notification_read=slot.notification_read,
            created_at=slot.created_at,
        )

    def to_domain(self) -> BookedSlot:
        return BookedSlot(
            id=self.id,
            date=self.date,
            time=dt.time(self.time.hour, self.time.minute),
            participant_id=self.participant_id,
            status=self.status,
            notification_read=self.notification_read,
            created_at=self.created_at,
        )


def _dump_availability(availability: WeeklyAvailability) -> Dict[str, dict]:
    return {
        weekday.label: {
            "enabled": day.enabled,
            "intervals": [
                {
                    "start": format_time(minutes_to_time(interval.start)),
                    "end": format_time(minutes_to_time(interval.end)),
                }
                for interval in day.intervals
            ],
        }
        for weekday, day in availability.days.items()
    }


class TemplateRecord(BaseModel):
    id: str
    creator_id: str
    title: str
    duration_minutes: int
    kind: MeetingKind
    availability: Dict[str, DaySchema]
    status: TemplateStatus = TemplateStatus.ACTIVE
    notification_read: bool = False
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None
    booked_slots: List[SlotRecord] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, template: MeetingTemplate) -> "TemplateRecord":
        return cls(
            id=template.id,
            creator_id=template.creator_id,
            title=template.title,
            duration_minutes=template.duration_minutes,
            kind=template.kind,
            availability=_dump_availability(template.availability),
            status=template.status,
            notification_read=template.notification_read,
            created_at=template.created_at,
            updated_at=template.updated_at,
            booked_slots=[SlotRecord.from_domain(slot) for slot in template.ledger],
        )

    def to_domain(self) -> MeetingTemplate:
        return MeetingTemplate(
            id=self.id,
            creator_id=self.creator_id,
            title=self.title,
            duration_minutes=self.duration_minutes,
            kind=self.kind,
            availability=WeeklyAvailability(
                days={Weekday.from_name(name): day.to_domain() for name, day in self.availability.items()}
            ),
            status=self.status,
            ledger=BookingLedger(record.to_domain() for record in self.booked_slots),
            notification_read=self.notification_read,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class ParticipantRecord(BaseModel):
    id: str
    full_name: str
    email: str
    phone: Optional[str] = None
    creator_id: Optional[str] = None
    meeting_ids: List[str] = Field(default_factory=list)
    last_meeting: Optional[dt.datetime] = None

    @classmethod
    def from_domain(cls, participant: Participant) -> "ParticipantRecord":
        return cls(**dataclasses.asdict(participant))

    def to_domain(self) -> Participant:
        return Participant(**self.model_dump())


class StoreDocument(BaseModel):
    meetings: List[TemplateRecord] = Field(default_factory=list)
    participants: List[ParticipantRecord] = Field(default_factory=list)


class JsonStore:
    """Reads and atomically rewrites the JSON document on disk."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> StoreDocument:
        """
        Load the document, or an empty one if the file does not exist yet.

        Raises:
            StorageError: If the file cannot be read or is not a valid store
        """
        if not self.path.exists():
            return StoreDocument()

        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Cannot read data file {self.path}: {exc}") from exc

        try:
            return StoreDocument.model_validate_json(raw or "{}")
        except PydanticValidationError as exc:
            raise StorageError(f"Data file {self.path} is corrupt: {exc.error_count()} error(s)") from exc

    def write(self, document: StoreDocument) -> None:
        """
        Persist the document via a temporary file and ``os.replace``.

        Raises:
            StorageError: If the file cannot be written
        """
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(document.model_dump_json(indent=2), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise StorageError(f"Cannot write data file {self.path}: {exc}") from exc

        logger.debug("Wrote %d meetings and %d participants to %s",
                     len(document.meetings), len(document.participants), self.path)


def _template_from_record(record: TemplateRecord) -> MeetingTemplate:
    try:
        return record.to_domain()
    except (ValidationError, ConflictError) as exc:
        raise StorageError(f"Stored meeting {record.id} is invalid: {exc}") from exc


class JsonMeetingRepository:
    """Template storage backed by a ``JsonStore``."""

    def __init__(self, store: JsonStore):
        self.store = store

    async def get(self, meeting_id: str) -> MeetingTemplate | None:
        for record in self.store.load().meetings:
            if record.id == meeting_id:
                return _template_from_record(record)
        return None

    async def get_by_share_token(self, token: str) -> MeetingTemplate | None:
        # The share token is the template id
        return await self.get(token)

    async def list_for_creator(self, creator_id: str) -> List[MeetingTemplate]:
        return [
            _template_from_record(record)
            for record in self.store.load().meetings
            if record.creator_id == creator_id
        ]

    async def save(self, template: MeetingTemplate) -> None:
        document = self.store.load()
        record = TemplateRecord.from_domain(template)

        for index, existing in enumerate(document.meetings):
            if existing.id == template.id:
                document.meetings[index] = record
                break
        else:
            document.meetings.append(record)

        self.store.write(document)


class JsonParticipantRepository:
    """Participant storage backed by a ``JsonStore``."""

    def __init__(self, store: JsonStore):
        self.store = store

    async def get(self, participant_id: str) -> Participant | None:
        for record in self.store.load().participants:
            if record.id == participant_id:
                return record.to_domain()
        return None

    async def find_by_email(self, email: str) -> Participant | None:
        email = email.strip().lower()
        for record in self.store.load().participants:
            if record.email == email:
                return record.to_domain()
        return None

    async def list_all(self) -> List[Participant]:
        return [record.to_domain() for record in self.store.load().participants]

    async def save(self, participant: Participant) -> None:
        document = self.store.load()
        record = ParticipantRecord.from_domain(participant)

        for index, existing in enumerate(document.participants):
            if existing.id == participant.id:
                document.participants[index] = record
                break
        else:
            document.participants.append(record)

        self.store.write(document)

    async def delete(self, participant_id: str) -> bool:
        document = self.store.load()
        remaining = [record for record in document.participants if record.id != participant_id]

        if len(remaining) == len(document.participants):
            return False

        document.participants = remaining
        self.store.write(document)
        return True
