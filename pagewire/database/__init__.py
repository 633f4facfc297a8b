"""Persistence layer: SQLModel tables and the async session manager."""

from .models import (
    ChannelCredential,
    Classification,
    ConversationParticipant,
    LoggedMessage,
    MessageDirection,
    Owner,
    ParticipantRole,
    Platform,
    Tenant,
)
from .session_manager import DatabaseSessionManager, TransientDatabaseError

__all__ = [
    "ChannelCredential",
    "Classification",
    "ConversationParticipant",
    "DatabaseSessionManager",
    "LoggedMessage",
    "MessageDirection",
    "Owner",
    "ParticipantRole",
    "Platform",
    "Tenant",
    "TransientDatabaseError",
]
