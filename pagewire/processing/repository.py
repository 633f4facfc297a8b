"""
Conversation log persistence.

Helpers over the ``messages`` and ``participants`` tables. Every write is
idempotent: messages are insert-or-ignore on (tenant, provider id, direction)
and participants are upserted, so redelivered webhooks and concurrent
handlers converge on the same rows without locking.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import delete, func
from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from pagewire.credentials.policy import as_utc
from pagewire.credentials.store import SessionFactory
from pagewire.database.models import (
    Classification,
    ConversationParticipant,
    LoggedMessage,
    MessageDirection,
    ParticipantRole,
    utcnow,
)

PROFILE_FIELDS = ("name", "phone", "email", "location")


class MessageRepository:
    """Reads and writes LoggedMessage rows for one tenant at a time."""

    def __init__(self, db_session_factory: SessionFactory):
        self.db = db_session_factory

    async def exists(
        self, tenant_id: str, provider_message_id: str, direction: MessageDirection
    ) -> bool:
        async with self.db() as session:
            result = await session.execute(
                select(LoggedMessage.id).where(
                    LoggedMessage.tenant_id == tenant_id,
                    LoggedMessage.provider_message_id == provider_message_id,
                    LoggedMessage.direction == direction,
                )
            )
            return result.first() is not None

    async def insert_if_absent(
        self,
        *,
        tenant_id: str,
        provider_message_id: str,
        sender_id: str,
        recipient_id: str,
        direction: MessageDirection,
        classification: Classification,
        timestamp: datetime,
        body: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> bool:
        """
        Insert a message unless one with the same dedup key is already logged.

        Returns:
            True if a row was written, False if it already existed
        """
        try:
            async with self.db() as session:
                session.add(
                    LoggedMessage(
                        tenant_id=tenant_id,
                        provider_message_id=provider_message_id,
                        sender_id=sender_id,
                        recipient_id=recipient_id,
                        direction=direction,
                        classification=classification,
                        body=body,
                        payload=payload or {},
                        timestamp=timestamp,
                    )
                )
                await session.flush()
        except IntegrityError:
            return False
        return True

    async def delete_by_provider_id(self, tenant_id: str, provider_message_id: str) -> int:
        """Remove every logged row with this provider id for the tenant. Returns the count."""
        async with self.db() as session:
            result = await session.execute(
                delete(LoggedMessage).where(
                    LoggedMessage.tenant_id == tenant_id,
                    LoggedMessage.provider_message_id == provider_message_id,
                )
            )
            return result.rowcount or 0

    async def count(self, tenant_id: str | None = None) -> int:
        async with self.db() as session:
            statement = select(func.count()).select_from(LoggedMessage)
            if tenant_id is not None:
                statement = statement.where(LoggedMessage.tenant_id == tenant_id)
            result = await session.execute(statement)
            return int(result.scalar_one())

    async def list_for_tenant(self, tenant_id: str) -> list[LoggedMessage]:
        async with self.db() as session:
            result = await session.execute(
                select(LoggedMessage)
                .where(LoggedMessage.tenant_id == tenant_id)
                .order_by(LoggedMessage.timestamp, LoggedMessage.id)
            )
            return list(result.scalars().all())


class ParticipantRepository:
    """Upserts conversation participants and their extracted profile fields."""

    def __init__(self, db_session_factory: SessionFactory):
        self.db = db_session_factory

    async def upsert(
        self,
        tenant_id: str,
        platform_user_id: str,
        role: ParticipantRole,
        seen_at: datetime | None = None,
    ) -> None:
        seen_at = seen_at or utcnow()
        try:
            await self._upsert_once(tenant_id, platform_user_id, role, seen_at)
        except IntegrityError:
            # Lost a first-insert race; the row exists now, so this is an update
            await self._upsert_once(tenant_id, platform_user_id, role, seen_at)

    async def _upsert_once(
        self,
        tenant_id: str,
        platform_user_id: str,
        role: ParticipantRole,
        seen_at: datetime,
    ) -> None:
        async with self.db() as session:
            participant = await session.get(
                ConversationParticipant, (platform_user_id, tenant_id)
            )
            if participant is None:
                participant = ConversationParticipant(
                    platform_user_id=platform_user_id,
                    tenant_id=tenant_id,
                    role=role,
                    first_seen_at=seen_at,
                    last_seen_at=seen_at,
                )
            else:
                participant.role = role
                # Redeliveries arrive out of order; last_seen_at only moves forward
                participant.last_seen_at = max(
                    as_utc(participant.last_seen_at), as_utc(seen_at)
                )
            session.add(participant)
            await session.flush()

    async def update_profile(
        self, tenant_id: str, platform_user_id: str, fields: dict[str, str | None]
    ) -> dict[str, str]:
        """
        Overwrite profile fields that have a value; ignore the rest.

        Returns:
            The fields that were written
        """
        updates = {
            key: value
            for key, value in fields.items()
            if key in PROFILE_FIELDS and value
        }
        if not updates:
            return {}

        async with self.db() as session:
            participant = await session.get(
                ConversationParticipant, (platform_user_id, tenant_id)
            )
            if participant is None:
                return {}
            for key, value in updates.items():
                setattr(participant, key, value)
            session.add(participant)
        return updates

    async def get(
        self, tenant_id: str, platform_user_id: str
    ) -> ConversationParticipant | None:
        async with self.db() as session:
            return await session.get(
                ConversationParticipant, (platform_user_id, tenant_id)
            )
