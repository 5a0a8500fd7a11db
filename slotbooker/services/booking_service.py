"""
Application service coordinating templates, participants and bookings.

The service resolves templates through a repository protocol, delegates
schedule checks to the domain-level ``ConflictChecker`` and mutates the
embedded ``BookingLedger``. Every ledger mutation runs under a per-meeting
lock held across load, check, append and save, so two concurrent requests
for the same (meeting, date, time) cannot both succeed.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
import weakref
from datetime import date, datetime, time
from typing import Any, Awaitable, Callable, Dict, List, Set, Tuple, TypeVar

import pendulum

from ..domain.conflict_checker import ConflictChecker
from ..domain.exceptions import (
    ConflictError,
    ConflictReason,
    ForbiddenError,
    NotFoundError,
    StorageError,
    SystemFailure,
    ValidationError,
)
from ..domain.models import BookedSlot, Participant, SlotStatus, TemplateStatus, parse_date, parse_time
from ..domain.slot_generator import SlotGenerator
from ..domain.template import MeetingTemplate
from ..schemas import ParticipantPayload, ParticipantUpdatePayload, TemplatePayload, parse_payload
from .repositories import MeetingRepositoryProtocol, ParticipantRepositoryProtocol

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _new_id() -> str:
    return uuid.uuid4().hex


class BookingService:
    """
    Use-case coordinator for the booking engine.

    Creator-scoped operations take an ``actor_id`` supplied by the caller's
    identity layer; booking is public and needs no actor.
    """

    def __init__(
        self,
        meetings: MeetingRepositoryProtocol,
        participants: ParticipantRepositoryProtocol,
        timezone: str = "UTC",
        clock: Callable[[], datetime] | None = None,
        conflict_checker: ConflictChecker | None = None,
        slot_generator: SlotGenerator | None = None,
    ) -> None:
        self._meetings = meetings
        self._participants = participants
        self.timezone = timezone
        self._clock = clock or (lambda: pendulum.now(self.timezone))
        self._checker = conflict_checker or ConflictChecker()
        self._generator = slot_generator or SlotGenerator()
        # Entries vanish once no coroutine holds or awaits the lock
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()
        self._participant_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    async def create_template(self, actor_id: str, payload: TemplatePayload | Dict[str, Any]) -> MeetingTemplate:
        """Create a new active template owned by ``actor_id``."""
        self._require_actor(actor_id)
        data = parse_payload(TemplatePayload, payload)
        now = self._now()

        template = MeetingTemplate(
            id=_new_id(),
            creator_id=actor_id,
            title=data.title,
            duration_minutes=data.duration_minutes,
            kind=data.kind,
            availability=data.to_weekly_availability(),
            created_at=now,
            updated_at=now,
        )

        await self._storage("creating template", self._meetings.save(template))
        logger.info("Created meeting %s (%s) for creator %s", template.id, template.title, actor_id)
        return template

    async def update_template(
        self,
        actor_id: str,
        meeting_id: str,
        payload: TemplatePayload | Dict[str, Any],
    ) -> MeetingTemplate:
        """Fully replace a template's core fields and weekly availability."""
        data = parse_payload(TemplatePayload, payload)

        async with self._lock_for(meeting_id):
            template = await self._load_owned(actor_id, meeting_id)
            template.replace_schedule(
                title=data.title,
                duration_minutes=data.duration_minutes,
                kind=data.kind,
                availability=data.to_weekly_availability(),
                updated_at=self._now(),
            )
            await self._storage("updating template", self._meetings.save(template))

        logger.info("Updated meeting %s", meeting_id)
        return template

    async def set_template_status(self, actor_id: str, meeting_id: str, status: TemplateStatus | str) -> MeetingTemplate:
        """Toggle a template between active and inactive."""
        new_status = self._parse_enum(TemplateStatus, status, "template status")
        if new_status == TemplateStatus.DELETED:
            raise ValidationError("Use delete_template to delete a meeting")

        async with self._lock_for(meeting_id):
            template = await self._load_owned(actor_id, meeting_id)
            template.status = new_status
            template.updated_at = self._now()
            await self._storage("changing template status", self._meetings.save(template))

        return template

    async def delete_template(self, actor_id: str, meeting_id: str) -> MeetingTemplate:
        """Soft-delete a template; its bookings stay on record."""
        async with self._lock_for(meeting_id):
            template = await self._load_owned(actor_id, meeting_id)
            template.status = TemplateStatus.DELETED
            template.updated_at = self._now()
            await self._storage("deleting template", self._meetings.save(template))

        logger.info("Soft-deleted meeting %s", meeting_id)
        return template

    async def list_templates(self, actor_id: str, include_deleted: bool = False) -> List[MeetingTemplate]:
        templates = await self._storage("listing templates", self._meetings.list_for_creator(actor_id))
        if include_deleted:
            return templates
        return [template for template in templates if template.status != TemplateStatus.DELETED]

    async def get_template(self, meeting_ref: str) -> MeetingTemplate:
        """Load a template by id or share token."""
        return await self._resolve(meeting_ref)

    async def available_slots(self, meeting_ref: str, slot_date: str | date) -> List[time]:
        """Start times on ``slot_date`` that a booking page can still offer."""
        requested_date = parse_date(slot_date)
        template = await self._resolve(meeting_ref)

        if not template.is_bookable:
            return []

        return self._generator.open_slots_for_date(template, requested_date, now=self._now())

    # ------------------------------------------------------------------
    # Participants
    # ------------------------------------------------------------------

    async def register_participant(
        self,
        payload: ParticipantPayload | Dict[str, Any],
        creator_id: str | None = None,
    ) -> Participant:
        """
        Find a participant by email or create one.

        An existing record keeps its id; name and phone are refreshed.
        """
        data = parse_payload(ParticipantPayload, payload)

        async with self._participant_lock:
            participant = await self._storage(
                "looking up participant", self._participants.find_by_email(data.email)
            )

            if participant is None:
                participant = Participant(
                    id=_new_id(),
                    full_name=data.full_name,
                    email=data.email,
                    phone=data.phone,
                    creator_id=creator_id,
                )
                logger.info("Registered participant %s", participant.id)
            else:
                participant.full_name = data.full_name
                if data.phone:
                    participant.phone = data.phone
                if creator_id:
                    participant.creator_id = creator_id

            await self._storage("saving participant", self._participants.save(participant))

        return participant

    async def list_participants(self, actor_id: str) -> List[Participant]:
        """Participants who booked the actor's active templates or were added by the actor."""
        templates = await self._storage("listing templates", self._meetings.list_for_creator(actor_id))
        meeting_ids = {template.id for template in templates if template.status == TemplateStatus.ACTIVE}
        participants = await self._storage("listing participants", self._participants.list_all())

        return [
            participant for participant in participants
            if participant.creator_id == actor_id or meeting_ids.intersection(participant.meeting_ids)
        ]

    async def update_participant(
        self,
        actor_id: str,
        participant_id: str,
        payload: ParticipantUpdatePayload | Dict[str, Any],
    ) -> Participant:
        """
        Partially update a participant the actor can see.

        Omitted fields keep their value. The email stays unique across
        participants.

        Raises:
            ValidationError: If the payload is invalid or the email belongs
                to another participant
            NotFoundError: If the participant does not exist or is not
                visible to the actor
        """
        self._require_actor(actor_id)
        data = parse_payload(ParticipantUpdatePayload, payload)
        participant = await self._load_participant(participant_id)
        templates = await self._storage("listing templates", self._meetings.list_for_creator(actor_id))
        self._ensure_visible(actor_id, participant, {template.id for template in templates})

        async with self._participant_lock:
            participant = await self._load_participant(participant_id)

            if data.email and data.email != participant.email:
                holder = await self._storage(
                    "looking up participant", self._participants.find_by_email(data.email)
                )
                if holder is not None and holder.id != participant.id:
                    raise ValidationError(f"Email already in use: {data.email}")
                participant.email = data.email
            if data.full_name:
                participant.full_name = data.full_name
            if data.phone:
                participant.phone = data.phone

            await self._storage("saving participant", self._participants.save(participant))

        logger.info("Updated participant %s", participant_id)
        return participant

    async def delete_participant(self, actor_id: str, participant_id: str) -> int:
        """
        Detach a participant from the actor's templates.

        Their slots are spliced out of every template the actor owns. The
        record itself is removed only when no other creator's meeting
        still refers to it.

        Returns:
            Number of slots removed
        """
        participant = await self._load_participant(participant_id)
        templates = await self._storage("listing templates", self._meetings.list_for_creator(actor_id))
        owned_ids = {template.id for template in templates}

        self._ensure_visible(actor_id, participant, owned_ids)

        removed = 0
        for template in templates:
            async with self._lock_for(template.id):
                fresh = await self._storage("loading template", self._meetings.get(template.id))
                if fresh is None:
                    continue
                count = fresh.ledger.remove_participant(participant_id)
                if count:
                    await self._storage("saving template", self._meetings.save(fresh))
                    removed += count

        async with self._participant_lock:
            participant = await self._load_participant(participant_id)
            remaining = [meeting_id for meeting_id in participant.meeting_ids if meeting_id not in owned_ids]
            if remaining:
                participant.meeting_ids = remaining
                if participant.creator_id == actor_id:
                    participant.creator_id = None
                await self._storage("saving participant", self._participants.save(participant))
            else:
                await self._storage("deleting participant", self._participants.delete(participant_id))

        logger.info("Detached participant %s from creator %s (%d slots removed)", participant_id, actor_id, removed)
        return removed

    # ------------------------------------------------------------------
    # Booking
    # ------------------------------------------------------------------

    async def book(
        self,
        meeting_ref: str,
        slot_date: str | date,
        slot_time: str | time,
        participant_id: str,
    ) -> BookedSlot:
        """
        Book a slot on a template for an existing participant.

        Raises:
            ValidationError: If a required field is missing or malformed
            NotFoundError: If the template or participant does not exist
            ConflictError: If the day is closed, the time is outside the
                window, or the slot is already taken
        """
        missing = [
            name for name, value in (
                ("date", slot_date), ("time", slot_time), ("participant", participant_id),
            )
            if not value
        ]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", details=missing)

        requested_date = parse_date(slot_date)
        requested_time = parse_time(slot_time)

        template = await self._resolve(meeting_ref)
        if not template.is_bookable:
            raise NotFoundError("Meeting", meeting_ref)
        await self._load_participant(participant_id)

        async with self._lock_for(template.id):
            # Re-read inside the lock so the check sees every committed booking
            template = await self._resolve(template.id)
            if not template.is_bookable:
                raise NotFoundError("Meeting", meeting_ref)
            now = self._now()

            try:
                status = self._checker.ensure_bookable(template, requested_date, requested_time, now)
            except ConflictError as exc:
                logger.info(
                    "Booking rejected for meeting %s at %s %s: %s",
                    template.id, requested_date, requested_time, exc.code,
                )
                raise

            slot = template.ledger.append(
                BookedSlot(
                    id=_new_id(),
                    date=requested_date,
                    time=requested_time,
                    participant_id=participant_id,
                    status=status,
                    created_at=now,
                )
            )
            await self._storage("saving booking", self._meetings.save(template))

        async with self._participant_lock:
            participant = await self._load_participant(participant_id)
            participant.record_meeting(template.id, now)
            await self._storage("updating participant", self._participants.save(participant))

        logger.info(
            "Booked meeting %s at %s %s for participant %s (%s)",
            template.id, requested_date, requested_time, participant_id, slot.status.value,
        )
        return slot

    async def book_as_attendee(
        self,
        meeting_ref: str,
        slot_date: str | date,
        slot_time: str | time,
        attendee: ParticipantPayload | Dict[str, Any],
    ) -> Tuple[Participant, BookedSlot]:
        """Register (or find) the attendee by email, then book for them."""
        participant = await self.register_participant(attendee)
        slot = await self.book(meeting_ref, slot_date, slot_time, participant.id)
        return participant, slot

    async def change_slot_status(
        self,
        actor_id: str,
        meeting_id: str,
        slot_id: str,
        status: SlotStatus | str,
    ) -> BookedSlot:
        """Apply a ledger state transition on behalf of the template's creator."""
        new_status = self._parse_enum(SlotStatus, status, "slot status")

        async with self._lock_for(meeting_id):
            template = await self._load_owned(actor_id, meeting_id)
            slot = template.ledger.transition(slot_id, new_status)
            await self._storage("changing slot status", self._meetings.save(template))

        logger.info("Slot %s of meeting %s is now %s", slot_id, meeting_id, new_status.value)
        return slot

    async def reschedule_slot(
        self,
        actor_id: str,
        meeting_id: str,
        slot_id: str,
        slot_date: str | date,
        slot_time: str | time,
    ) -> BookedSlot:
        """Move a pending slot to another (date, time) inside the schedule."""
        requested_date = parse_date(slot_date)
        requested_time = parse_time(slot_time)

        async with self._lock_for(meeting_id):
            template = await self._load_owned(actor_id, meeting_id)
            template.ledger.require(slot_id)

            check = self._checker.can_book(template, requested_date, requested_time, self._now())
            if check.reason in (ConflictReason.DAY_CLOSED, ConflictReason.OUTSIDE_WINDOW):
                raise ConflictError(check.reason)

            slot = template.ledger.move(slot_id, requested_date, requested_time)
            await self._storage("rescheduling slot", self._meetings.save(template))

        return slot

    async def mark_slot_read(self, actor_id: str, meeting_id: str, slot_id: str) -> BookedSlot:
        async with self._lock_for(meeting_id):
            template = await self._load_owned(actor_id, meeting_id)
            slot = template.ledger.mark_notification_read(slot_id)
            await self._storage("marking slot read", self._meetings.save(template))
        return slot

    async def delete_slot(self, actor_id: str, meeting_id: str, slot_id: str) -> None:
        """
        Physically remove a slot from the ledger.

        Raises:
            NotFoundError: If the slot is not (or no longer) in the ledger
        """
        async with self._lock_for(meeting_id):
            template = await self._load_owned(actor_id, meeting_id)
            if not template.ledger.remove(slot_id):
                raise NotFoundError("Slot", slot_id)
            await self._storage("deleting slot", self._meetings.save(template))

        logger.info("Removed slot %s from meeting %s", slot_id, meeting_id)

    async def slots_due_for_review(self, actor_id: str) -> List[Tuple[MeetingTemplate, BookedSlot]]:
        """Pending slots in the past, across the actor's templates."""
        now = self._now()
        return [
            (template, slot)
            for template in await self.list_templates(actor_id)
            for slot in template.ledger.due_for_review(now)
        ]

    async def upcoming_bookings(self, actor_id: str) -> List[Tuple[MeetingTemplate, BookedSlot]]:
        """Non-deleted slots still ahead, across the actor's active templates, earliest first."""
        now = self._now()
        upcoming = [
            (template, slot)
            for template in await self.list_templates(actor_id)
            if template.is_bookable
            for slot in template.ledger.upcoming(now)
        ]
        return sorted(upcoming, key=lambda pair: pair[1].key)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _now(self) -> datetime:
        return self._clock()

    def _lock_for(self, meeting_id: str) -> asyncio.Lock:
        lock = self._locks.get(meeting_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[meeting_id] = lock
        return lock

    @staticmethod
    def _require_actor(actor_id: str) -> None:
        if not actor_id:
            raise ForbiddenError("An authenticated creator is required")

    @staticmethod
    def _parse_enum(enum_type, value, label: str):
        try:
            return enum_type(value)
        except ValueError:
            allowed = ", ".join(member.value for member in enum_type)
            raise ValidationError(f"Invalid {label} '{value}', expected one of: {allowed}") from None

    async def _storage(self, action: str, operation: Awaitable[T]) -> T:
        """Await a repository call, turning storage failures into ``SystemFailure``."""
        try:
            return await operation
        except StorageError as exc:
            logger.error("Storage failure while %s: %s", action, exc, exc_info=True)
            raise SystemFailure() from exc

    async def _resolve(self, meeting_ref: str) -> MeetingTemplate:
        if not meeting_ref:
            raise ValidationError("Meeting id is required")

        template = await self._storage("loading template", self._meetings.get(meeting_ref))
        if template is None:
            template = await self._storage(
                "loading template", self._meetings.get_by_share_token(meeting_ref)
            )

        if template is None or template.status == TemplateStatus.DELETED:
            raise NotFoundError("Meeting", meeting_ref)

        return template

    async def _load_owned(self, actor_id: str, meeting_id: str) -> MeetingTemplate:
        self._require_actor(actor_id)
        template = await self._resolve(meeting_id)

        if not template.is_owned_by(actor_id):
            logger.warning("Creator %s may not modify meeting %s", actor_id, meeting_id)
            raise ForbiddenError("Not authorized to modify this meeting")

        return template

    @staticmethod
    def _ensure_visible(actor_id: str, participant: Participant, owned_ids: Set[str]) -> None:
        """A creator sees participants they added or who booked one of their meetings."""
        if participant.creator_id != actor_id and not owned_ids.intersection(participant.meeting_ids):
            raise NotFoundError("Participant", participant.id)

    async def _load_participant(self, participant_id: str) -> Participant:
        participant = await self._storage("loading participant", self._participants.get(participant_id))
        if participant is None:
            raise NotFoundError("Participant", participant_id)
        return participant
