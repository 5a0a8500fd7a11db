"""
The booking ledger: the ordered collection of booked slots of one meeting.

Next to the list the ledger keeps an index of every non-deleted slot keyed
on its (date, time) pair. The index is the single place where the
"no two active bookings share a slot" invariant is enforced.
"""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Dict, Iterable, Iterator, List, Tuple

from .exceptions import ConflictError, ConflictReason, NotFoundError, ValidationError
from .models import BookedSlot, SlotStatus

SlotKey = Tuple[date, time]

# pending is the only state with outgoing transitions
ALLOWED_TRANSITIONS = {
    SlotStatus.PENDING: {SlotStatus.COMPLETED, SlotStatus.MISSED, SlotStatus.DELETED},
    SlotStatus.COMPLETED: set(),
    SlotStatus.MISSED: set(),
    SlotStatus.DELETED: set(),
}


def _moment(now: datetime) -> SlotKey:
    return (date(now.year, now.month, now.day), time(now.hour, now.minute, now.second))


class BookingLedger:
    """
    Ordered booked slots plus an index of the active (date, time) pairs.

    Completed and missed slots keep occupying their pair; only the
    ``deleted`` status or physical removal frees it.
    """

    def __init__(self, slots: Iterable[BookedSlot] = ()):
        self._slots: List[BookedSlot] = []
        self._active: Dict[SlotKey, BookedSlot] = {}

        for slot in slots:
            self.append(slot)

    def __iter__(self) -> Iterator[BookedSlot]:
        return iter(list(self._slots))

    def __len__(self) -> int:
        return len(self._slots)

    def __repr__(self) -> str:
        return f"BookingLedger(slots={len(self._slots)}, active={len(self._active)})"

    def get(self, slot_id: str) -> BookedSlot | None:
        for slot in self._slots:
            if slot.id == slot_id:
                return slot
        return None

    def require(self, slot_id: str) -> BookedSlot:
        slot = self.get(slot_id)
        if slot is None:
            raise NotFoundError("Slot", slot_id)
        return slot

    def is_taken(self, slot_date: date, slot_time: time) -> bool:
        """Check whether a non-deleted slot already occupies the pair."""
        return (slot_date, slot_time) in self._active

    def append(self, slot: BookedSlot) -> BookedSlot:
        """
        Append a slot iff no active slot occupies its (date, time).

        Raises:
            ConflictError: If the pair is already taken (reason ``slot_taken``)
        """
        if slot.is_active:
            if slot.key in self._active:
                raise ConflictError(ConflictReason.SLOT_TAKEN)
            self._active[slot.key] = slot

        self._slots.append(slot)
        return slot

    def transition(self, slot_id: str, status: SlotStatus) -> BookedSlot:
        """
        Move a slot to a new status.

        Only ``pending`` has outgoing transitions. Completing a slot clears
        its notification flag so the completion alert surfaces again.

        Raises:
            NotFoundError: If the slot is not in the ledger
            ValidationError: If the transition is not allowed
        """
        slot = self.require(slot_id)

        if status not in ALLOWED_TRANSITIONS[slot.status]:
            raise ValidationError(
                f"Cannot change slot status from '{slot.status.value}' to '{status.value}'"
            )

        slot.status = status

        if status == SlotStatus.COMPLETED:
            slot.notification_read = False
        elif status == SlotStatus.DELETED:
            self._active.pop(slot.key, None)

        return slot

    def move(self, slot_id: str, slot_date: date, slot_time: time) -> BookedSlot:
        """
        Reschedule a pending slot to another (date, time).

        Raises:
            NotFoundError: If the slot is not in the ledger
            ValidationError: If the slot is no longer pending
            ConflictError: If the target pair is taken by another slot
        """
        slot = self.require(slot_id)

        if slot.status != SlotStatus.PENDING:
            raise ValidationError(f"Only pending slots can be rescheduled, slot is '{slot.status.value}'")

        target = (slot_date, slot_time)
        occupant = self._active.get(target)
        if occupant is not None and occupant is not slot:
            raise ConflictError(ConflictReason.SLOT_TAKEN)

        del self._active[slot.key]
        slot.date, slot.time = slot_date, slot_time
        self._active[target] = slot

        return slot

    def remove(self, slot_id: str) -> bool:
        """
        Physically splice a slot out of the ledger.

        Returns:
            True if the slot was removed, False if it was already absent
        """
        for index, slot in enumerate(self._slots):
            if slot.id == slot_id:
                del self._slots[index]
                if self._active.get(slot.key) is slot:
                    del self._active[slot.key]
                return True
        return False

    def remove_participant(self, participant_id: str) -> int:
        """Remove every slot booked by a participant. Returns the count removed."""
        doomed = [slot.id for slot in self._slots if slot.participant_id == participant_id]
        for slot_id in doomed:
            self.remove(slot_id)
        return len(doomed)

    def mark_notification_read(self, slot_id: str) -> BookedSlot:
        slot = self.require(slot_id)
        slot.notification_read = True
        return slot

    def active_slots(self) -> List[BookedSlot]:
        return [slot for slot in self._slots if slot.is_active]

    def upcoming(self, now: datetime) -> List[BookedSlot]:
        """Non-deleted slots strictly after ``now``, earliest first."""
        current = _moment(now)
        return sorted(
            (slot for slot in self._slots if slot.is_active and slot.key > current),
            key=lambda slot: slot.key,
        )

    def due_for_review(self, now: datetime) -> List[BookedSlot]:
        """Pending slots whose moment has passed and still await completed/missed."""
        current = _moment(now)
        return [
            slot for slot in self._slots
            if slot.status == SlotStatus.PENDING and slot.key < current
        ]
