"""
Services plugin.

Wires the application services onto ``app.state`` once the database and the
HTTP session exist:

- ``credential_store``, ``lifecycle``: credential persistence and refresh
- ``tenant_resolver``, ``tenant_linker``, ``message_processor``,
  ``webhook_controller``
- ``credential_sweeper``: constructed here, started by CredentialSweepPlugin

External collaborators (identity provider, channel sender, reply generator)
default to the Graph API and OpenAI clients and can be injected instead.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from openai import AsyncOpenAI

from pagewire.api.controllers.webhook_controller import WebhookController
from pagewire.core.config.settings import Settings, settings
from pagewire.core.logging.logger import get_app_logger
from pagewire.credentials.lifecycle import TokenLifecycleManager
from pagewire.credentials.store import SQLCredentialStore
from pagewire.credentials.sweep import CredentialSweeper
from pagewire.messaging.graph_client import GraphAPIClient
from pagewire.messaging.reply_generator import (
    DisabledReplyGenerator,
    OpenAIReplyGenerator,
)
from pagewire.processing.message_processor import MessageProcessor
from pagewire.processing.repository import MessageRepository, ParticipantRepository
from pagewire.tenants.linker import TenantAccountLinker
from pagewire.tenants.resolver import TenantResolver
from pagewire.webhooks.normalizer import EventNormalizer

if TYPE_CHECKING:
    from fastapi import FastAPI

    from pagewire.core.factory.pagewire_builder import PagewireBuilder
    from pagewire.messaging.interfaces import (
        ChannelSender,
        IdentityProvider,
        ReplyGenerator,
    )


class ServicesPlugin:
    def __init__(
        self,
        config: Settings | None = None,
        identity_provider: IdentityProvider | None = None,
        sender: ChannelSender | None = None,
        reply_generator: ReplyGenerator | None = None,
    ):
        self.config = config or settings
        self.identity_provider = identity_provider
        self.sender = sender
        self.reply_generator = reply_generator

    def configure(self, builder: PagewireBuilder) -> None:
        builder.add_startup_hook(self._services_startup, priority=30)
        builder.add_shutdown_hook(self._services_shutdown, priority=30)

    async def startup(self, app: FastAPI) -> None:
        await self._services_startup(app)

    async def shutdown(self, app: FastAPI) -> None:
        await self._services_shutdown(app)

    async def _services_startup(self, app: FastAPI) -> None:
        logger = get_app_logger()
        db_session_factory = app.state.db_manager.get_session

        graph_client = None
        if self.identity_provider is None or self.sender is None:
            graph_client = GraphAPIClient(
                app.state.http_session,
                app_id=self.config.meta_app_id,
                app_secret=self.config.meta_app_secret,
                api_version=self.config.graph_api_version,
                base_url=self.config.graph_base_url,
            )
        identity_provider = self.identity_provider or graph_client
        sender = self.sender or graph_client
        reply_generator = self.reply_generator or self._default_reply_generator()

        store = SQLCredentialStore(db_session_factory)
        lifecycle = TokenLifecycleManager(store, identity_provider)
        messages = MessageRepository(db_session_factory)
        participants = ParticipantRepository(db_session_factory)
        resolver = TenantResolver(db_session_factory)
        processor = MessageProcessor(
            messages=messages,
            participants=participants,
            lifecycle=lifecycle,
            sender=sender,
            reply_generator=reply_generator,
            log_echo_messages=self.config.log_echo_messages,
        )

        app.state.config = self.config
        app.state.credential_store = store
        app.state.lifecycle = lifecycle
        app.state.tenant_resolver = resolver
        app.state.tenant_linker = TenantAccountLinker(
            db_session_factory, lifecycle, identity_provider
        )
        app.state.message_processor = processor
        app.state.webhook_controller = WebhookController(
            normalizer=EventNormalizer(),
            resolver=resolver,
            messages=messages,
            processor=processor,
            app_secret=self.config.meta_app_secret,
            verify_token=self.config.webhook_verify_token,
            event_timeout_seconds=self.config.event_timeout_seconds,
        )
        app.state.credential_sweeper = CredentialSweeper(
            lifecycle,
            interval_seconds=self.config.credential_sweep_interval_seconds,
            concurrency=self.config.credential_sweep_concurrency,
        )

        logger.info(
            f"Services ready - reply generation: {type(reply_generator).__name__}, "
            f"event timeout: {self.config.event_timeout_seconds}s"
        )

    async def _services_shutdown(self, app: FastAPI) -> None:
        for name in (
            "webhook_controller",
            "message_processor",
            "tenant_resolver",
            "tenant_linker",
            "lifecycle",
            "credential_store",
            "credential_sweeper",
        ):
            setattr(app.state, name, None)

    def _default_reply_generator(self) -> ReplyGenerator:
        if not self.config.has_openai:
            get_app_logger().warning(
                "OPENAI_API_KEY not set - inbound messages will be logged without replies"
            )
            return DisabledReplyGenerator()
        return OpenAIReplyGenerator(
            AsyncOpenAI(api_key=self.config.openai_api_key),
            model=self.config.openai_model,
        )
