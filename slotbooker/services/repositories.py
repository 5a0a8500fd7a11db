"""
Persistence protocols the booking service depends on.

Adapters implement these; the service never touches storage directly.
Implementations raise ``StorageError`` when the backing store fails.
"""

from __future__ import annotations

from typing import List, Protocol

from ..domain.models import Participant
from ..domain.template import MeetingTemplate


class MeetingRepositoryProtocol(Protocol):
    """Storage of meeting templates and their embedded ledgers."""

    async def get(self, meeting_id: str) -> MeetingTemplate | None:
        """Load a template by id."""

    async def get_by_share_token(self, token: str) -> MeetingTemplate | None:
        """Load a template by its public share token."""

    async def list_for_creator(self, creator_id: str) -> List[MeetingTemplate]:
        """Load every template owned by a creator, in creation order."""

    async def save(self, template: MeetingTemplate) -> None:
        """Insert or replace a template, including its ledger."""


class ParticipantRepositoryProtocol(Protocol):
    """Storage of participant records."""

    async def get(self, participant_id: str) -> Participant | None:
        """Load a participant by id."""

    async def find_by_email(self, email: str) -> Participant | None:
        """Load a participant by (lowercased) email."""

    async def list_all(self) -> List[Participant]:
        """Load every participant."""

    async def save(self, participant: Participant) -> None:
        """Insert or replace a participant."""

    async def delete(self, participant_id: str) -> bool:
        """Remove a participant. Returns False if it was already absent."""
