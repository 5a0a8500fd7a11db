"""
Tests for the JSON file repositories.
"""

import asyncio
import json
from datetime import time

import pendulum
import pytest

from slotbooker.adapters.json_store import JsonMeetingRepository, JsonParticipantRepository, JsonStore
from slotbooker.domain.exceptions import ConflictError, StorageError, SystemFailure
from slotbooker.domain.models import SlotStatus, Weekday
from slotbooker.services.booking_service import BookingService

NOW = pendulum.datetime(2024, 11, 20, 12, 0, tz="Europe/Berlin")
MONDAY = "2024-11-25"

TEMPLATE_PAYLOAD = {
    "title": "Intro call",
    "duration": 30,
    "type": "video",
    "availability": {"monday": {"enabled": True, "timeSlots": [{"start": "09:00", "end": "12:00"}]}},
}


def _service(path) -> BookingService:
    store = JsonStore(path)
    return BookingService(
        meetings=JsonMeetingRepository(store),
        participants=JsonParticipantRepository(store),
        timezone="Europe/Berlin",
        clock=lambda: NOW,
    )


class TestJsonStore:
    """Tests for persistence through the JSON document."""

    def test_missing_file_is_an_empty_store(self, tmp_path):
        document = JsonStore(tmp_path / "data.json").load()

        assert document.meetings == []
        assert document.participants == []

    def test_bookings_survive_a_new_service(self, tmp_path):
        path = tmp_path / "data.json"

        async def write():
            service = _service(path)
            template = await service.create_template("creator-1", TEMPLATE_PAYLOAD)
            _, slot = await service.book_as_attendee(
                template.id, MONDAY, "10:30", {"name": "Dana Levi", "email": "dana@example.com"}
            )
            return template, slot

        template, slot = asyncio.run(write())

        async def read():
            service = _service(path)
            stored = await service.get_template(template.id)
            participants = await service.list_participants("creator-1")
            return stored, participants

        stored, participants = asyncio.run(read())

        assert stored.title == "Intro call"
        assert stored.availability.is_day_open(Weekday.MONDAY)
        assert stored.ledger.get(slot.id).time == time(10, 30)
        assert stored.ledger.get(slot.id).status == SlotStatus.PENDING
        assert [participant.email for participant in participants] == ["dana@example.com"]

    def test_reloaded_ledger_still_rejects_double_booking(self, tmp_path):
        path = tmp_path / "data.json"

        async def scenario():
            service = _service(path)
            template = await service.create_template("creator-1", TEMPLATE_PAYLOAD)
            participant = await service.register_participant({"name": "Dana", "email": "dana@example.com"})
            await service.book(template.id, MONDAY, "10:30", participant.id)
            await _service(path).book(template.id, MONDAY, "10:30", participant.id)

        with pytest.raises(ConflictError):
            asyncio.run(scenario())

    def test_file_is_plain_json(self, tmp_path):
        path = tmp_path / "data.json"
        asyncio.run(_service(path).create_template("creator-1", TEMPLATE_PAYLOAD))

        document = json.loads(path.read_text(encoding="utf-8"))

        assert document["meetings"][0]["availability"]["monday"]["intervals"] == [
            {"start": "09:00", "end": "12:00"}
        ]
        assert not path.with_name("data.json.tmp").exists()

    def test_delete_participant_record(self, tmp_path):
        store = JsonStore(tmp_path / "data.json")
        repository = JsonParticipantRepository(store)

        async def scenario():
            service = _service(tmp_path / "data.json")
            participant = await service.register_participant({"name": "Dana", "email": "dana@example.com"})
            return await repository.delete(participant.id), await repository.delete(participant.id)

        assert asyncio.run(scenario()) == (True, False)

    def test_corrupt_file_raises_storage_error(self, tmp_path):
        path = tmp_path / "data.json"
        path.write_text('{"meetings": [{"id": 1}]}', encoding="utf-8")

        with pytest.raises(StorageError, match="corrupt"):
            JsonStore(path).load()

    def test_corrupt_file_surfaces_as_system_failure(self, tmp_path):
        path = tmp_path / "data.json"
        path.write_text("not json at all", encoding="utf-8")

        with pytest.raises(SystemFailure):
            asyncio.run(_service(path).get_template("anything"))
