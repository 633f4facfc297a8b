"""
Tenant account linking.

Routing depends on ``tenants.account_id`` matching the id the provider puts
in webhook events: the page id for Messenger, the linked Instagram business
account id for Instagram. Both can change after onboarding (a page is
re-linked to another Instagram account, a page is renamed), so the account id
and display name are re-read from the provider with the tenant's channel
credential.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError

from pagewire.core.exceptions import AccountLinkError, TenantNotFound
from pagewire.core.logging.logger import get_logger
from pagewire.credentials.store import SessionFactory
from pagewire.database.models import Platform, Tenant
from pagewire.tenants.resolver import TenantContext

if TYPE_CHECKING:
    from pagewire.credentials.lifecycle import TokenLifecycleManager
    from pagewire.messaging.interfaces import AccountInfo, IdentityProvider

logger = get_logger(__name__)


class TenantAccountLinker:
    def __init__(
        self,
        db_session_factory: SessionFactory,
        lifecycle: TokenLifecycleManager,
        identity_provider: IdentityProvider,
    ):
        self.db = db_session_factory
        self.lifecycle = lifecycle
        self.identity_provider = identity_provider

    async def sync_account(self, tenant_id: str) -> TenantContext:
        """
        Refresh a tenant's routing account id and display name from the provider.

        Raises:
            TenantNotFound: Unknown tenant id
            AccountLinkError: No Instagram account is linked to the page, or
                the account already belongs to another tenant
            CredentialError: The channel credential is unavailable or rejected
            DownstreamFailure: The provider lookup failed
        """
        async with self.db() as session:
            tenant = await session.get(Tenant, tenant_id)
            if tenant is None:
                raise TenantNotFound(tenant_id, message=f"Unknown tenant '{tenant_id}'")
            current = TenantContext.from_row(tenant)

        token = await self.lifecycle.get_tenant_credential(current)
        info = await self.identity_provider.fetch_account_info(current.page_id, token)
        account_id = self._routing_account_id(current, info)

        try:
            async with self.db() as session:
                tenant = await session.get(Tenant, tenant_id)
                tenant.account_id = account_id
                tenant.display_name = info.display_name or tenant.display_name
                session.add(tenant)
                await session.flush()
                updated = TenantContext.from_row(tenant)
        except IntegrityError as e:
            raise AccountLinkError(
                f"Account {account_id} is already linked to another tenant"
            ) from e

        if updated.account_id != current.account_id:
            logger.info(
                f"Tenant {tenant_id} account relinked: "
                f"{current.account_id} -> {updated.account_id}"
            )
        return updated

    @staticmethod
    def _routing_account_id(tenant: TenantContext, info: AccountInfo) -> str:
        if tenant.platform == Platform.MESSENGER:
            return tenant.page_id
        # Without a linked business account the lookup falls back to the page id
        if info.account_id in ("", tenant.page_id):
            raise AccountLinkError(
                f"Page {tenant.page_id} has no linked Instagram business account"
            )
        return info.account_id
