"""
Pagewire plugin protocol.

Plugins are how infrastructure (HTTP session, database, services, background
sweep) joins the application without the builder knowing about any of it.
"""

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from fastapi import FastAPI

    from .pagewire_builder import PagewireBuilder


class PagewirePlugin(Protocol):
    """
    Lifecycle interface every plugin implements.

    1. configure: synchronous, during build; register middleware, routers, hooks
    2. startup: async, during application startup
    3. shutdown: async, during application shutdown (reverse of startup)
    """

    def configure(self, builder: "PagewireBuilder") -> None: ...

    async def startup(self, app: "FastAPI") -> None: ...

    async def shutdown(self, app: "FastAPI") -> None: ...
