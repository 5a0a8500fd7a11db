"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .booking_service import BookingService
from .repositories import MeetingRepositoryProtocol, ParticipantRepositoryProtocol

__all__ = ["BookingService", "MeetingRepositoryProtocol", "ParticipantRepositoryProtocol"]
