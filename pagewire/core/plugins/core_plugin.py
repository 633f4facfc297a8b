"""
Pagewire core plugin.

Logging, the shared aiohttp session, the middleware stack and the health and
webhook routes. Every other plugin builds on what this one sets up.
"""

from typing import TYPE_CHECKING

import aiohttp
from fastapi import FastAPI

from pagewire.api.middleware.error_handler import ErrorHandlerMiddleware
from pagewire.api.middleware.request_logging import RequestLoggingMiddleware
from pagewire.api.routes.credentials import router as credentials_router
from pagewire.api.routes.health import router as health_router
from pagewire.api.routes.tenants import router as tenants_router
from pagewire.api.routes.webhooks import router as webhooks_router

from ..config.settings import settings
from ..logging.logger import get_app_logger, setup_app_logging

if TYPE_CHECKING:
    from ..factory.pagewire_builder import PagewireBuilder


class CorePlugin:
    """Foundation plugin: logging, HTTP session, middleware, routes."""

    def __init__(self, http_connection_limit: int = 100, http_timeout_seconds: float = 30):
        self.http_connection_limit = http_connection_limit
        self.http_timeout_seconds = http_timeout_seconds

    def configure(self, builder: "PagewireBuilder") -> None:
        # Higher priority numbers run closer to the routes
        builder.add_middleware(ErrorHandlerMiddleware, priority=80)
        builder.add_middleware(RequestLoggingMiddleware, priority=70)

        builder.add_router(health_router)
        builder.add_router(webhooks_router)
        builder.add_router(credentials_router)
        builder.add_router(tenants_router)

        # First to start, last to stop
        builder.add_startup_hook(self._core_startup, priority=10)
        builder.add_shutdown_hook(self._core_shutdown, priority=10)

    async def startup(self, app: FastAPI) -> None:
        await self._core_startup(app)

    async def shutdown(self, app: FastAPI) -> None:
        await self._core_shutdown(app)

    async def _core_startup(self, app: FastAPI) -> None:
        setup_app_logging()
        logger = get_app_logger()

        logger.info(f"Starting Pagewire v{settings.version}")
        logger.info(f"Environment: {settings.environment}, log level: {settings.log_level}")
        if settings.is_development:
            logger.info(f"Development mode - logs: {settings.log_dir}")

        if getattr(app.state, "http_session", None) is None:
            connector = aiohttp.TCPConnector(
                limit=self.http_connection_limit,
                keepalive_timeout=30,
                enable_cleanup_closed=True,
            )
            app.state.http_session = aiohttp.ClientSession(
                connector=connector,
                timeout=aiohttp.ClientTimeout(total=self.http_timeout_seconds),
            )
            logger.info(
                f"Persistent HTTP session created - connections: {self.http_connection_limit}"
            )

        base_url = (
            f"http://localhost:{settings.port}"
            if settings.is_development
            else "https://your-domain.com"
        )
        logger.info(f"Webhook URL: {base_url}/webhook")
        logger.info(f"Health check: {base_url}/health")

    async def _core_shutdown(self, app: FastAPI) -> None:
        logger = get_app_logger()
        session = getattr(app.state, "http_session", None)
        if session is not None and not session.closed:
            await session.close()
            logger.info("HTTP session closed")
        app.state.http_session = None
