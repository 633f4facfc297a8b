"""
Tenant resolution for inbound webhook events.

Single lookup used by every event path: the platform account id an event was
addressed to (or sent from, for echoes) maps to exactly one tenant through
``tenants.account_id``.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlmodel import select

from pagewire.core.exceptions import TenantNotFound
from pagewire.credentials.store import SessionFactory
from pagewire.database.models import Platform, Tenant


@dataclass(frozen=True)
class TenantContext:
    """Everything the processing pipeline needs to know about a tenant."""

    tenant_id: str
    display_name: str
    platform: Platform
    page_id: str
    account_id: str
    owner_id: str

    @classmethod
    def from_row(cls, tenant: Tenant) -> TenantContext:
        return cls(
            tenant_id=tenant.id,
            display_name=tenant.display_name,
            platform=tenant.platform,
            page_id=tenant.page_id,
            account_id=tenant.account_id,
            owner_id=tenant.owner_id,
        )

    def is_business_sender(self, sender_id: str) -> bool:
        """True iff the sender is the tenant's own channel account."""
        return sender_id == self.account_id


class TenantResolver:
    def __init__(self, db_session_factory: SessionFactory):
        self.db = db_session_factory

    async def resolve(self, platform_account_id: str) -> TenantContext:
        """
        Map a platform account id to its tenant.

        Raises:
            TenantNotFound: No tenant has linked this account
        """
        async with self.db() as session:
            result = await session.execute(
                select(Tenant).where(Tenant.account_id == platform_account_id)
            )
            tenant = result.scalars().first()

        if tenant is None:
            raise TenantNotFound(platform_account_id)

        return TenantContext.from_row(tenant)
