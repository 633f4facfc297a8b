"""
Token lifecycle manager.

Guarantees that any credential handed to a caller is usable. Owner-level
user tokens are exchanged for long-lived ones when stale; channel tokens are
re-minted from a fresh owner token when stale. Concurrent refreshes of the
same credential are coalesced into one in-flight provider round-trip.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from functools import partial
from typing import TYPE_CHECKING

from pagewire.core.exceptions import CredentialInvalid, CredentialUnavailable
from pagewire.core.logging.logger import get_logger
from pagewire.credentials.policy import CredentialKind, is_expired, utcnow
from pagewire.credentials.store import ChannelCredentialRecord, CredentialStore

if TYPE_CHECKING:
    from pagewire.messaging.interfaces import IdentityProvider
    from pagewire.tenants.resolver import TenantContext

RefreshKey = tuple[CredentialKind, str]


@dataclass
class SweepReport:
    """Outcome of one proactive refresh pass over every stored credential."""

    started_at: datetime
    refreshed: list[str] = field(default_factory=list)
    skipped: int = 0
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict:
        return {
            "started_at": self.started_at.isoformat(),
            "refreshed": list(self.refreshed),
            "skipped": self.skipped,
            "failed": dict(self.failed),
        }


class TokenLifecycleManager:
    """
    Validates, refreshes and chains credentials (owner token -> channel token).

    This is the only writer of credential tokens. It keeps one in-process
    table of in-flight refreshes; everything else lives in the store.
    """

    def __init__(
        self,
        store: CredentialStore,
        identity_provider: IdentityProvider,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Args:
            store: Credential persistence
            identity_provider: Token exchange / minting collaborator
            clock: Returns the current UTC time; injectable for tests
        """
        self.store = store
        self.identity_provider = identity_provider
        self.clock = clock
        self.logger = get_logger(__name__)
        self._inflight: dict[RefreshKey, asyncio.Task] = {}

    def is_expired(self, refreshed_at: datetime, kind: CredentialKind) -> bool:
        return is_expired(refreshed_at, kind, now=self.clock())

    @property
    def inflight_count(self) -> int:
        return len(self._inflight)

    # ------------------------------------------------------------------
    # Owner credentials
    # ------------------------------------------------------------------

    async def get_owner_credential(
        self, owner_id: str, bootstrap_token: str | None = None
    ) -> str:
        """
        Return a usable long-lived owner token.

        A supplied bootstrap token is an explicit re-authorization and is always
        exchanged. Otherwise the stored token is returned while fresh and
        exchanged for a new long-lived one when stale.

        Raises:
            CredentialUnavailable: No stored token and no bootstrap token
            CredentialInvalid: The provider rejected the token
        """
        if bootstrap_token is not None:
            token = await self._exchange_owner_token(owner_id, bootstrap_token)
            await self.store.clear_channel_rejections(owner_id)
            return token

        record = await self.store.get_owner(owner_id)
        if record is not None and not self.is_expired(
            record.refreshed_at, CredentialKind.OWNER
        ):
            return record.token

        return await self._coalesce(
            (CredentialKind.OWNER, owner_id),
            partial(self._refresh_owner, owner_id),
        )

    async def _refresh_owner(self, owner_id: str) -> str:
        # Re-read: a refresh may have landed between the caller's read and now
        record = await self.store.get_owner(owner_id)
        if record is None:
            raise CredentialUnavailable(
                f"No credential on file for owner '{owner_id}'; re-authorization required",
                key=f"owner:{owner_id}",
            )
        if not self.is_expired(record.refreshed_at, CredentialKind.OWNER):
            return record.token

        self.logger.info(f"Owner credential for {owner_id} is stale, exchanging")
        try:
            return await self._exchange_owner_token(owner_id, record.token)
        except CredentialInvalid:
            # Only the stored token is dropped on rejection, never on a bad bootstrap
            await self.store.invalidate_owner(owner_id)
            raise

    async def _exchange_owner_token(self, owner_id: str, token: str) -> str:
        try:
            long_lived = await self.identity_provider.exchange_for_long_lived_token(token)
        except CredentialInvalid as e:
            self.logger.error(
                f"Provider rejected owner credential for {owner_id}: {e.message}"
            )
            raise CredentialInvalid(
                f"Owner credential for '{owner_id}' was rejected; re-authorization required",
                key=f"owner:{owner_id}",
            ) from e

        await self.store.put_owner(owner_id, long_lived, self.clock())
        self.logger.info(f"Owner credential refreshed for {owner_id}")
        return long_lived

    # ------------------------------------------------------------------
    # Channel credentials
    # ------------------------------------------------------------------

    async def get_channel_credential(
        self, tenant_id: str, channel_id: str, owner_id: str
    ) -> str:
        """
        Return a usable channel token for a tenant's channel.

        Stale or missing tokens are re-minted from a fresh owner credential,
        so channel freshness depends on owner freshness (never the reverse).
        A channel the provider refused to mint for stays refused, without
        another provider call, until the owner re-authorizes.

        Raises:
            CredentialUnavailable: The owner has no token to mint from
            CredentialInvalid: The provider rejected the owner token
        """
        record = await self.store.get_channel(tenant_id, channel_id)
        if record is not None:
            self._check_not_rejected(record)
            if record.token and not self.is_expired(
                record.refreshed_at, CredentialKind.CHANNEL
            ):
                return record.token

        return await self._coalesce(
            (CredentialKind.CHANNEL, f"{tenant_id}:{channel_id}"),
            partial(self._refresh_channel, tenant_id, channel_id, owner_id),
        )

    async def get_tenant_credential(self, tenant: TenantContext) -> str:
        """Channel credential for the tenant's own send channel."""
        return await self.get_channel_credential(
            tenant.tenant_id, tenant.page_id, tenant.owner_id
        )

    def _check_not_rejected(self, record: ChannelCredentialRecord) -> None:
        if record.rejected_at is not None:
            raise CredentialInvalid(
                f"Channel credential for '{record.tenant_id}:{record.channel_id}' "
                f"was rejected at {record.rejected_at.isoformat()}; "
                "re-authorization required",
                key=f"channel:{record.tenant_id}:{record.channel_id}",
            )

    async def _refresh_channel(
        self, tenant_id: str, channel_id: str, owner_id: str
    ) -> str:
        record = await self.store.get_channel(tenant_id, channel_id)
        if record is not None:
            self._check_not_rejected(record)
            if record.token and not self.is_expired(
                record.refreshed_at, CredentialKind.CHANNEL
            ):
                return record.token

        owner_token = await self.get_owner_credential(owner_id)

        self.logger.info(
            f"Minting channel credential for tenant {tenant_id}, channel {channel_id}"
        )
        try:
            token = await self.identity_provider.mint_channel_token(
                channel_id, owner_token
            )
        except CredentialInvalid as e:
            self.logger.error(
                f"Provider refused channel credential for tenant {tenant_id}: {e.message}"
            )
            await self.store.reject_channel(
                tenant_id, channel_id, self.clock(), derived_from=owner_id
            )
            raise CredentialInvalid(
                f"Channel credential for '{tenant_id}:{channel_id}' was rejected; "
                "re-authorization required",
                key=f"channel:{tenant_id}:{channel_id}",
            ) from e

        await self.store.put_channel(
            tenant_id, channel_id, token, self.clock(), derived_from=owner_id
        )
        return token

    # ------------------------------------------------------------------
    # Proactive refresh
    # ------------------------------------------------------------------

    async def refresh_stale(self, concurrency: int = 5) -> SweepReport:
        """
        Refresh every owner, then every channel credential past its policy age.

        One credential failing never aborts the pass: failures are collected in
        the report keyed by ``owner:<id>`` / ``channel:<tenant>:<channel>``.
        Channels whose owner failed in this pass, and channels marked rejected,
        are recorded as failed without another provider round-trip.
        """
        report = SweepReport(started_at=self.clock())
        semaphore = asyncio.Semaphore(max(1, concurrency))

        async def attempt(key: str, refresh: Callable[[], Awaitable[str]]) -> None:
            async with semaphore:
                try:
                    await refresh()
                except Exception as e:
                    message = getattr(e, "message", None) or str(e) or type(e).__name__
                    self.logger.warning(f"Sweep could not refresh {key}: {message}")
                    report.failed[key] = message
                else:
                    report.refreshed.append(key)

        owners = await self.store.list_owners()
        stale_owners = [
            owner
            for owner in owners
            if self.is_expired(owner.refreshed_at, CredentialKind.OWNER)
        ]
        report.skipped += len(owners) - len(stale_owners)
        await asyncio.gather(
            *(
                attempt(
                    f"owner:{owner.owner_id}",
                    partial(self.get_owner_credential, owner.owner_id),
                )
                for owner in stale_owners
            )
        )

        failed_owners = {
            key.split(":", 1)[1] for key in report.failed if key.startswith("owner:")
        }
        pending = []
        for binding in await self.store.list_channels():
            key = f"channel:{binding.tenant_id}:{binding.channel_id}"
            if binding.rejected_at is not None:
                report.failed[key] = "rejected by provider; re-authorization required"
            elif not self.is_expired(binding.refreshed_at, CredentialKind.CHANNEL):
                report.skipped += 1
            elif binding.owner_id in failed_owners:
                report.failed[key] = f"owner '{binding.owner_id}' failed to refresh"
            else:
                pending.append(
                    attempt(
                        key,
                        partial(
                            self.get_channel_credential,
                            binding.tenant_id,
                            binding.channel_id,
                            binding.owner_id,
                        ),
                    )
                )
        await asyncio.gather(*pending)

        return report

    # ------------------------------------------------------------------
    # In-flight coalescing
    # ------------------------------------------------------------------

    async def _coalesce(
        self, key: RefreshKey, refresh: Callable[[], Awaitable[str]]
    ) -> str:
        """
        Run ``refresh`` once per key; concurrent callers share its result.

        The refresh runs in its own task and is shielded, so a caller that
        times out does not cancel the refresh other callers are waiting on.
        """
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(
                refresh(), name=f"credential-refresh:{key[0].value}:{key[1]}"
            )
            self._inflight[key] = task
            task.add_done_callback(partial(self._forget, key))
        else:
            self.logger.debug(f"Joining in-flight {key[0].value} refresh for {key[1]}")

        return await asyncio.shield(task)

    def _forget(self, key: RefreshKey, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # Mark the exception retrieved when every waiter has gone away
        if not task.cancelled():
            task.exception()
