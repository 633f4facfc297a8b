"""
Application factory.

Assembles the Pagewire FastAPI app from its plugins. Collaborators can be
injected for tests or alternative backends; by default the Graph API and
OpenAI clients are used.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import FastAPI

from .config.settings import Settings, settings
from .factory.pagewire_builder import PagewireBuilder
from .plugins import CorePlugin, CredentialSweepPlugin, DatabasePlugin, ServicesPlugin

if TYPE_CHECKING:
    from pagewire.messaging.interfaces import (
        ChannelSender,
        IdentityProvider,
        ReplyGenerator,
    )


def create_app(
    config: Settings | None = None,
    *,
    identity_provider: IdentityProvider | None = None,
    sender: ChannelSender | None = None,
    reply_generator: ReplyGenerator | None = None,
    enable_sweep: bool | None = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Settings to use (defaults to the environment-loaded settings)
        identity_provider: Token exchange / minting backend
        sender: Outbound message backend
        reply_generator: Reply generation backend
        enable_sweep: Start the periodic credential sweep at startup
            (defaults to CREDENTIAL_SWEEP_ENABLED)
    """
    config = config or settings
    if enable_sweep is None:
        enable_sweep = config.credential_sweep_enabled

    builder = (
        PagewireBuilder()
        .add_plugin(CorePlugin())
        .add_plugin(DatabasePlugin(config.database_url, echo=config.database_echo))
        .add_plugin(
            ServicesPlugin(
                config,
                identity_provider=identity_provider,
                sender=sender,
                reply_generator=reply_generator,
            )
        )
        .add_plugin(CredentialSweepPlugin(enabled=enable_sweep))
        .configure(
            title="Pagewire",
            version=config.version,
            docs_url="/docs" if config.is_development else None,
            redoc_url="/redoc" if config.is_development else None,
        )
    )
    return builder.build()
