"""
Contracts for the external collaborators the core calls out to.

Identity provider, channel send and reply generation are black boxes to the
credential manager and the message processor; these protocols are all they
rely on.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from pagewire.tenants.resolver import TenantContext


@dataclass(frozen=True)
class AccountInfo:
    account_id: str
    display_name: str


@dataclass(frozen=True)
class SendResult:
    recipient_id: str
    message_id: str | None = None


class IdentityProvider(Protocol):
    """OAuth token exchange and account lookups."""

    async def exchange_for_long_lived_token(self, short_token: str) -> str:
        """
        Exchange a (possibly short-lived) user token for a long-lived one.

        Raises:
            CredentialInvalid: If the provider rejects the token
            DownstreamFailure: On transport or unexpected provider errors
        """
        ...

    async def mint_channel_token(self, channel_id: str, owner_token: str) -> str:
        """
        Obtain a channel-scoped token using the owner's user token.

        Raises:
            CredentialInvalid: If the provider rejects the owner token
            DownstreamFailure: On transport or unexpected provider errors
        """
        ...

    async def fetch_account_info(self, channel_id: str, token: str) -> AccountInfo:
        """Fetch the linked account id and display name for a channel."""
        ...


class ChannelSender(Protocol):
    """Outbound message delivery on a channel."""

    async def send(
        self, channel_id: str, credential: str, recipient_id: str, text: str
    ) -> SendResult:
        """
        Send a text message.

        Raises:
            DownstreamFailure: If the platform rejects or fails the send
        """
        ...


class ReplyGenerator(Protocol):
    """Produces the AI reply for an inbound message."""

    async def generate(self, tenant: TenantContext, message_text: str) -> str | None:
        """
        Return reply text, or None when no reply should be sent.

        Raises:
            DownstreamFailure: If the generation backend fails
        """
        ...
