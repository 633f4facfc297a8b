"""
Credential store.

Pure persistence for owner and channel credentials. Each ``put`` writes the
token and its timestamp in one transaction, so readers never observe a token
paired with the wrong freshness. No freshness logic lives here.
"""

from __future__ import annotations

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from pagewire.database.models import ChannelCredential, Owner, Tenant

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


@dataclass(frozen=True)
class OwnerCredential:
    owner_id: str
    token: str
    refreshed_at: datetime


@dataclass(frozen=True)
class ChannelCredentialRecord:
    tenant_id: str
    channel_id: str
    token: str | None
    refreshed_at: datetime | None
    derived_from: str | None = None
    rejected_at: datetime | None = None


@dataclass(frozen=True)
class ChannelBinding:
    """A channel credential together with the owner that can re-mint it."""

    tenant_id: str
    channel_id: str
    owner_id: str
    refreshed_at: datetime
    rejected_at: datetime | None = None


class CredentialStore(Protocol):
    """Durable mapping from (owner|tenant, kind) to token + freshness timestamp."""

    async def get_owner(self, owner_id: str) -> OwnerCredential | None: ...

    async def put_owner(
        self, owner_id: str, token: str, refreshed_at: datetime
    ) -> None: ...

    async def invalidate_owner(self, owner_id: str) -> None: ...

    async def get_channel(
        self, tenant_id: str, channel_id: str
    ) -> ChannelCredentialRecord | None: ...

    async def put_channel(
        self,
        tenant_id: str,
        channel_id: str,
        token: str,
        refreshed_at: datetime,
        derived_from: str | None = None,
    ) -> None: ...

    async def reject_channel(
        self,
        tenant_id: str,
        channel_id: str,
        rejected_at: datetime,
        derived_from: str | None = None,
    ) -> None: ...

    async def clear_channel_rejections(self, owner_id: str) -> None: ...

    async def list_owners(self) -> list[OwnerCredential]: ...

    async def list_channels(self) -> list[ChannelBinding]: ...


class SQLCredentialStore:
    """CredentialStore backed by the ``owners`` and ``channel_credentials`` tables."""

    def __init__(self, db_session_factory: SessionFactory):
        """
        Args:
            db_session_factory: Callable returning an async session context manager
        """
        self.db = db_session_factory

    async def get_owner(self, owner_id: str) -> OwnerCredential | None:
        async with self.db() as session:
            owner = await session.get(Owner, owner_id)
            if owner is None or not owner.user_token or owner.refreshed_at is None:
                return None
            return OwnerCredential(
                owner_id=owner.id,
                token=owner.user_token,
                refreshed_at=owner.refreshed_at,
            )

    async def put_owner(self, owner_id: str, token: str, refreshed_at: datetime) -> None:
        async with self.db() as session:
            owner = await session.get(Owner, owner_id)
            if owner is None:
                owner = Owner(id=owner_id)
            owner.user_token = token
            owner.refreshed_at = refreshed_at
            session.add(owner)

    async def invalidate_owner(self, owner_id: str) -> None:
        """Drop a rejected owner token so it is never presented to the provider again."""
        async with self.db() as session:
            owner = await session.get(Owner, owner_id)
            if owner is None:
                return
            owner.user_token = None
            session.add(owner)

    async def get_channel(
        self, tenant_id: str, channel_id: str
    ) -> ChannelCredentialRecord | None:
        async with self.db() as session:
            credential = await session.get(ChannelCredential, (tenant_id, channel_id))
            if credential is None:
                return None
            return ChannelCredentialRecord(
                tenant_id=credential.tenant_id,
                channel_id=credential.channel_id,
                token=credential.token,
                refreshed_at=credential.refreshed_at,
                derived_from=credential.derived_from,
                rejected_at=credential.rejected_at,
            )

    async def put_channel(
        self,
        tenant_id: str,
        channel_id: str,
        token: str,
        refreshed_at: datetime,
        derived_from: str | None = None,
    ) -> None:
        async with self.db() as session:
            credential = await session.get(ChannelCredential, (tenant_id, channel_id))
            if credential is None:
                credential = ChannelCredential(tenant_id=tenant_id, channel_id=channel_id)
            credential.token = token
            credential.refreshed_at = refreshed_at
            credential.derived_from = derived_from
            credential.rejected_at = None
            session.add(credential)

    async def reject_channel(
        self,
        tenant_id: str,
        channel_id: str,
        rejected_at: datetime,
        derived_from: str | None = None,
    ) -> None:
        """Mark a channel as needing re-authorization. Any stored token is kept."""
        async with self.db() as session:
            credential = await session.get(ChannelCredential, (tenant_id, channel_id))
            if credential is None:
                credential = ChannelCredential(
                    tenant_id=tenant_id, channel_id=channel_id, derived_from=derived_from
                )
            credential.rejected_at = rejected_at
            session.add(credential)

    async def clear_channel_rejections(self, owner_id: str) -> None:
        """Lift the re-authorization mark from every channel of the owner's tenants."""
        async with self.db() as session:
            tenant_ids = select(Tenant.id).where(Tenant.owner_id == owner_id)
            await session.execute(
                update(ChannelCredential)
                .where(ChannelCredential.tenant_id.in_(tenant_ids))
                .where(ChannelCredential.rejected_at.is_not(None))
                .values(rejected_at=None)
            )

    async def list_owners(self) -> list[OwnerCredential]:
        async with self.db() as session:
            result = await session.execute(
                select(Owner)
                .where(Owner.user_token.is_not(None))
                .order_by(Owner.id)
            )
            return [
                OwnerCredential(
                    owner_id=owner.id,
                    token=owner.user_token,
                    refreshed_at=owner.refreshed_at,
                )
                for owner in result.scalars().all()
                if owner.refreshed_at is not None
            ]

    async def list_channels(self) -> list[ChannelBinding]:
        """
        List every tenant channel with its owner.

        Tenants whose channel credential was never minted are included with
        ``datetime.min`` so the sweep treats them as stale.
        """
        async with self.db() as session:
            result = await session.execute(
                select(Tenant, ChannelCredential)
                .join(
                    ChannelCredential,
                    (ChannelCredential.tenant_id == Tenant.id)
                    & (ChannelCredential.channel_id == Tenant.page_id),
                    isouter=True,
                )
                .order_by(Tenant.id)
            )
            bindings = []
            for tenant, credential in result.all():
                refreshed_at = credential.refreshed_at if credential else None
                bindings.append(
                    ChannelBinding(
                        tenant_id=tenant.id,
                        channel_id=tenant.page_id,
                        owner_id=tenant.owner_id,
                        refreshed_at=refreshed_at or datetime.min,
                        rejected_at=credential.rejected_at if credential else None,
                    )
                )
            return bindings
