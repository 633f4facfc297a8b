"""
Database plugin.

Owns the DatabaseSessionManager: initializes it at startup (with retries),
optionally creates the tables, and disposes the engine at shutdown.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pagewire.core.logging.logger import get_app_logger
from pagewire.database.session_manager import DatabaseSessionManager

if TYPE_CHECKING:
    from fastapi import FastAPI

    from pagewire.core.factory.pagewire_builder import PagewireBuilder


class DatabasePlugin:
    """
    Async database plugin (PostgreSQL via asyncpg, or SQLite via aiosqlite).

    The session manager is exposed as ``app.state.db_manager``; its
    ``get_session`` is the session factory every repository receives.
    """

    def __init__(
        self,
        url: str,
        *,
        auto_create_tables: bool = True,
        echo: bool = False,
        **pool_config,
    ):
        self.url = url
        self.auto_create_tables = auto_create_tables
        self.echo = echo
        self.pool_config = pool_config
        self._session_manager: DatabaseSessionManager | None = None

    def configure(self, builder: PagewireBuilder) -> None:
        builder.add_startup_hook(self._db_startup, priority=20)
        builder.add_shutdown_hook(self._db_shutdown, priority=20)

    async def startup(self, app: FastAPI) -> None:
        await self._db_startup(app)

    async def shutdown(self, app: FastAPI) -> None:
        await self._db_shutdown(app)

    async def _db_startup(self, app: FastAPI) -> None:
        logger = get_app_logger()
        logger.info(f"Connecting to database {self._mask_url(self.url)}")

        self._session_manager = DatabaseSessionManager(
            self.url, echo=self.echo, **self.pool_config
        )
        try:
            await self._session_manager.initialize()
            if self.auto_create_tables:
                await self._session_manager.create_tables()
                logger.debug("Database tables ensured")
        except Exception as e:
            logger.error(f"Database startup failed: {e}", exc_info=True)
            raise RuntimeError(f"DatabasePlugin startup failed: {e}") from e

        app.state.db_manager = self._session_manager
        logger.info("Database ready")

    async def _db_shutdown(self, app: FastAPI) -> None:
        if self._session_manager is not None:
            await self._session_manager.cleanup()
            self._session_manager = None
        app.state.db_manager = None

    @staticmethod
    def _mask_url(url: str) -> str:
        """Mask the password in ``user:pass@host`` URLs."""
        if "://" not in url:
            return url
        scheme, rest = url.split("://", 1)
        if "@" not in rest:
            return url
        user_part, host_part = rest.split("@", 1)
        if ":" in user_part:
            user_part = f"{user_part.split(':', 1)[0]}:***"
        return f"{scheme}://{user_part}@{host_part}"

    @property
    def session_manager(self) -> DatabaseSessionManager | None:
        return self._session_manager
