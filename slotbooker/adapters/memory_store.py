"""
In-memory repositories for tests and local experiments.
"""

import asyncio
import copy
from typing import Dict, List

from ..domain.models import Participant
from ..domain.template import MeetingTemplate


class InMemoryMeetingRepository:
    """
    Dict-backed template storage.

    Reads and writes hand out deep copies, so callers work on private
    snapshots the way they would with a real database. ``latency`` adds an
    ``asyncio.sleep`` to every call to expose interleavings between
    concurrent requests.
    """

    def __init__(self, latency: float = 0.0):
        self.latency = latency
        self._templates: Dict[str, MeetingTemplate] = {}

    async def _pause(self) -> None:
        if self.latency:
            await asyncio.sleep(self.latency)

    async def get(self, meeting_id: str) -> MeetingTemplate | None:
        await self._pause()
        template = self._templates.get(meeting_id)
        return copy.deepcopy(template) if template else None

    async def get_by_share_token(self, token: str) -> MeetingTemplate | None:
        await self._pause()
        for template in self._templates.values():
            if template.share_token == token:
                return copy.deepcopy(template)
        return None

    async def list_for_creator(self, creator_id: str) -> List[MeetingTemplate]:
        await self._pause()
        return [
            copy.deepcopy(template)
            for template in self._templates.values()
            if template.creator_id == creator_id
        ]

    async def save(self, template: MeetingTemplate) -> None:
        await self._pause()
        self._templates[template.id] = copy.deepcopy(template)


class InMemoryParticipantRepository:
    """Dict-backed participant storage with the same copy semantics."""

    def __init__(self, latency: float = 0.0):
        self.latency = latency
        self._participants: Dict[str, Participant] = {}

    async def _pause(self) -> None:
        if self.latency:
            await asyncio.sleep(self.latency)

    async def get(self, participant_id: str) -> Participant | None:
        await self._pause()
        participant = self._participants.get(participant_id)
        return copy.deepcopy(participant) if participant else None

    async def find_by_email(self, email: str) -> Participant | None:
        await self._pause()
        email = email.strip().lower()
        for participant in self._participants.values():
            if participant.email == email:
                return copy.deepcopy(participant)
        return None

    async def list_all(self) -> List[Participant]:
        await self._pause()
        return [copy.deepcopy(participant) for participant in self._participants.values()]

    async def save(self, participant: Participant) -> None:
        await self._pause()
        self._participants[participant.id] = copy.deepcopy(participant)

    async def delete(self, participant_id: str) -> bool:
        await self._pause()
        return self._participants.pop(participant_id, None) is not None
