"""
Adapters layer - Persistence implementations of the repository protocols.
"""

from .json_store import JsonMeetingRepository, JsonParticipantRepository, JsonStore
from .memory_store import InMemoryMeetingRepository, InMemoryParticipantRepository

__all__ = [
    "InMemoryMeetingRepository",
    "InMemoryParticipantRepository",
    "JsonMeetingRepository",
    "JsonParticipantRepository",
    "JsonStore",
]
