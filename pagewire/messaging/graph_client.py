"""
Meta Graph API client.

Implements the identity provider and channel sender contracts over one shared
aiohttp session (owned by the core plugin, closed at shutdown).

Error mapping:
- OAuth errors (HTTP 401, ``OAuthException``, codes 102/190/463/467) while
  exchanging or minting tokens -> CredentialInvalid
- Any other non-2xx response, transport error or timeout -> DownstreamFailure
"""

import asyncio
from typing import Any

import aiohttp

from pagewire.core.config.settings import settings
from pagewire.core.exceptions import CredentialInvalid, DownstreamFailure
from pagewire.core.logging.logger import get_logger
from pagewire.messaging.interfaces import AccountInfo, SendResult

OAUTH_ERROR_CODES = frozenset({102, 190, 463, 467})


class GraphUrlBuilder:
    """Builds versioned Graph API URLs."""

    def __init__(self, base_url: str, api_version: str):
        self.base_url = base_url.rstrip("/")
        self.api_version = api_version

    def get_endpoint_url(self, endpoint: str) -> str:
        return f"{self.base_url}/{self.api_version}/{endpoint.lstrip('/')}"

    def get_token_exchange_url(self) -> str:
        return self.get_endpoint_url("oauth/access_token")

    def get_messages_url(self, channel_id: str) -> str:
        return self.get_endpoint_url(f"{channel_id}/messages")


class GraphAPIClient:
    """Identity provider + channel sender backed by the Graph API."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        app_id: str | None = None,
        app_secret: str | None = None,
        api_version: str | None = None,
        base_url: str | None = None,
        logger: Any | None = None,
    ):
        """
        Args:
            session: Persistent aiohttp session (managed by the app lifespan)
            app_id: Meta app id used for token exchange
            app_secret: Meta app secret used for token exchange
            api_version: Graph API version, e.g. "v21.0"
            base_url: Graph API base URL
        """
        self.session = session
        self.app_id = app_id if app_id is not None else settings.meta_app_id
        self.app_secret = (
            app_secret if app_secret is not None else settings.meta_app_secret
        )
        self.url_builder = GraphUrlBuilder(
            base_url or settings.graph_base_url,
            api_version or settings.graph_api_version,
        )
        self.logger = logger or get_logger(__name__)

    # ------------------------------------------------------------------
    # IdentityProvider
    # ------------------------------------------------------------------

    async def exchange_for_long_lived_token(self, short_token: str) -> str:
        data = await self._request(
            "GET",
            self.url_builder.get_token_exchange_url(),
            params={
                "grant_type": "fb_exchange_token",
                "client_id": self.app_id,
                "client_secret": self.app_secret,
                "fb_exchange_token": short_token,
            },
            operation="token_exchange",
            credential_call=True,
        )
        token = data.get("access_token")
        if not token:
            raise DownstreamFailure(
                "Token exchange response did not include an access token",
                service="graph_api",
            )
        return token

    async def mint_channel_token(self, channel_id: str, owner_token: str) -> str:
        data = await self._request(
            "GET",
            self.url_builder.get_endpoint_url(channel_id),
            params={"fields": "access_token", "access_token": owner_token},
            operation="mint_channel_token",
            credential_call=True,
        )
        token = data.get("access_token")
        if not token:
            # The owner token is valid but lacks a role on this channel
            raise CredentialInvalid(
                f"Owner token cannot manage channel {channel_id}",
                key=f"channel:{channel_id}",
            )
        return token

    async def fetch_account_info(self, channel_id: str, token: str) -> AccountInfo:
        data = await self._request(
            "GET",
            self.url_builder.get_endpoint_url(channel_id),
            params={"fields": "name,instagram_business_account", "access_token": token},
            operation="fetch_account_info",
        )
        linked = data.get("instagram_business_account") or {}
        return AccountInfo(
            account_id=str(linked.get("id") or data.get("id") or channel_id),
            display_name=data.get("name", ""),
        )

    # ------------------------------------------------------------------
    # ChannelSender
    # ------------------------------------------------------------------

    async def send(
        self, channel_id: str, credential: str, recipient_id: str, text: str
    ) -> SendResult:
        data = await self._request(
            "POST",
            self.url_builder.get_messages_url(channel_id),
            params={"access_token": credential},
            json={
                "recipient": {"id": recipient_id},
                "messaging_type": "RESPONSE",
                "message": {"text": text},
            },
            operation="send_message",
        )
        return SendResult(
            recipient_id=str(data.get("recipient_id") or recipient_id),
            message_id=data.get("message_id"),
        )

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        operation: str,
        credential_call: bool = False,
    ) -> dict[str, Any]:
        try:
            async with self.session.request(
                method, url, params=params, json=json
            ) as response:
                try:
                    data = await response.json(content_type=None)
                except (aiohttp.ContentTypeError, ValueError):
                    data = {"error": {"message": await response.text()}}
                status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.error(f"Graph API {operation} transport error: {e}")
            raise DownstreamFailure(
                f"Graph API {operation} failed: {e}", service="graph_api"
            ) from e

        if not isinstance(data, dict):
            data = {"data": data}

        if 200 <= status < 300 and "error" not in data:
            return data

        error = data.get("error") or {}
        message = error.get("message") or f"HTTP {status}"
        code = error.get("code")
        self.logger.error(
            f"Graph API {operation} failed: status={status} code={code} "
            f"type={error.get('type')} message={message}"
        )

        if credential_call and _is_oauth_error(status, error):
            raise CredentialInvalid(f"Graph API rejected token: {message}")

        raise DownstreamFailure(
            f"Graph API {operation} failed: {message}",
            service="graph_api",
            status=status,
        )


def _is_oauth_error(status: int, error: dict[str, Any]) -> bool:
    if status == 401:
        return True
    if error.get("code") in OAUTH_ERROR_CODES:
        return True
    return error.get("type") == "OAuthException" and status == 400
