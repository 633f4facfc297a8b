"""Per-event business logic: conversation log, participants and replies."""

from .extraction import ExtractedProfile, extract_profile
from .message_processor import MessageProcessor, ProcessingOutcome, ProcessingStatus
from .repository import MessageRepository, ParticipantRepository

__all__ = [
    "ExtractedProfile",
    "MessageProcessor",
    "MessageRepository",
    "ParticipantRepository",
    "ProcessingOutcome",
    "ProcessingStatus",
    "extract_profile",
]
