"""
Credential sweep plugin.

Starts the periodic credential sweep once the services exist and cancels it
before anything it depends on is torn down.
"""

from typing import TYPE_CHECKING

from fastapi import FastAPI

from ..logging.logger import get_app_logger

if TYPE_CHECKING:
    from ..factory.pagewire_builder import PagewireBuilder


class CredentialSweepPlugin:
    def __init__(self, enabled: bool = True):
        self.enabled = enabled

    def configure(self, builder: "PagewireBuilder") -> None:
        builder.add_startup_hook(self._sweep_startup, priority=40)
        # Stops first, while the database and HTTP session are still open
        builder.add_shutdown_hook(self._sweep_shutdown, priority=90)

    async def startup(self, app: FastAPI) -> None:
        await self._sweep_startup(app)

    async def shutdown(self, app: FastAPI) -> None:
        await self._sweep_shutdown(app)

    async def _sweep_startup(self, app: FastAPI) -> None:
        if not self.enabled:
            get_app_logger().info("Credential sweep disabled")
            return
        app.state.credential_sweeper.start()

    async def _sweep_shutdown(self, app: FastAPI) -> None:
        sweeper = getattr(app.state, "credential_sweeper", None)
        if sweeper is not None:
            await sweeper.stop()
