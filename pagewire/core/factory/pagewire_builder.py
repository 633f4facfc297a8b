"""
PagewireBuilder - plugin-based FastAPI application factory.

Collects plugins, middleware, routers and lifecycle hooks, then builds one
FastAPI app whose lifespan runs every hook in priority order.
"""

from collections.abc import Callable
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI

from ..logging.logger import get_app_logger

if TYPE_CHECKING:
    from .plugin import PagewirePlugin


class PagewireBuilder:
    """
    Fluent builder for the Pagewire application.

    Example:
        app = (
            PagewireBuilder()
            .add_plugin(CorePlugin())
            .add_plugin(DatabasePlugin(settings.database_url))
            .configure(title="Pagewire")
            .build()
        )
    """

    def __init__(self):
        self.plugins: list[PagewirePlugin] = []
        self.middlewares: list[tuple[type, dict, int]] = []  # (class, kwargs, priority)
        self.routers: list[tuple[Any, dict]] = []  # (router, include_kwargs)
        self.startup_hooks: list[tuple[Callable, int]] = []  # (hook, priority)
        self.shutdown_hooks: list[tuple[Callable, int]] = []  # (hook, priority)
        self.config_overrides: dict[str, Any] = {}

    def add_plugin(self, plugin: "PagewirePlugin") -> "PagewireBuilder":
        self.plugins.append(plugin)
        return self

    def add_middleware(
        self, middleware_class: type, priority: int = 50, **kwargs: Any
    ) -> "PagewireBuilder":
        """
        Add middleware with priority ordering.

        Lower numbers wrap the application further out; higher numbers sit
        closer to the routes.
        """
        self.middlewares.append((middleware_class, kwargs, priority))
        return self

    def add_router(self, router: Any, **kwargs: Any) -> "PagewireBuilder":
        self.routers.append((router, kwargs))
        return self

    def add_startup_hook(self, hook: Callable, priority: int = 50) -> "PagewireBuilder":
        """
        Register an async ``hook(app)`` run at startup, lowest priority first.

        Priority guidelines:
        - 10: Core (logging, HTTP session)
        - 20: Infrastructure (database)
        - 30: Application services
        - 40: Background tasks
        - 50: Default
        """
        self.startup_hooks.append((hook, priority))
        return self

    def add_shutdown_hook(self, hook: Callable, priority: int = 50) -> "PagewireBuilder":
        """Register an async ``hook(app)`` run at shutdown, highest priority first."""
        self.shutdown_hooks.append((hook, priority))
        return self

    def configure(self, **overrides: Any) -> "PagewireBuilder":
        """Override FastAPI constructor arguments."""
        self.config_overrides.update(overrides)
        return self

    def build(self) -> FastAPI:
        """
        Build the FastAPI application.

        1. Configure plugins (sync registration only)
        2. Create the app with a lifespan that runs all hooks
        3. Add middleware by priority
        4. Include routers
        """
        logger = get_app_logger()

        for plugin in self.plugins:
            plugin.configure(self)
        logger.debug(
            f"Configured {len(self.plugins)} plugins: {len(self.middlewares)} middlewares, "
            f"{len(self.routers)} routers, {len(self.startup_hooks)} startup hooks"
        )

        @asynccontextmanager
        async def unified_lifespan(app: FastAPI):
            try:
                await self._execute_all_startup_hooks(app)
                logger.info("Application startup complete")
                yield
            finally:
                await self._execute_all_shutdown_hooks(app)
                logger.info("Application shutdown complete")

        config = {
            "title": "Pagewire",
            "description": "Multi-tenant Messenger/Instagram webhook backend",
            "version": "1.0.0",
            "lifespan": unified_lifespan,
        }
        config.update(self.config_overrides)
        app = FastAPI(**config)

        # add_middleware prepends, so add innermost first
        for middleware_class, kwargs, priority in sorted(
            self.middlewares, key=lambda x: x[2], reverse=True
        ):
            app.add_middleware(middleware_class, **kwargs)
            logger.debug(f"Added middleware {middleware_class.__name__} (priority: {priority})")

        for router, kwargs in self.routers:
            app.include_router(router, **kwargs)

        return app

    async def _execute_all_startup_hooks(self, app: FastAPI) -> None:
        logger = get_app_logger()
        for hook, priority in sorted(self.startup_hooks, key=lambda x: x[1]):
            hook_name = getattr(hook, "__name__", "anonymous_hook")
            logger.debug(f"Executing startup hook: {hook_name} (priority: {priority})")
            try:
                await hook(app)
            except Exception as e:
                logger.error(f"Startup hook {hook_name} failed: {e}", exc_info=True)
                raise

    async def _execute_all_shutdown_hooks(self, app: FastAPI) -> None:
        logger = get_app_logger()
        for hook, priority in sorted(
            self.shutdown_hooks, key=lambda x: x[1], reverse=True
        ):
            hook_name = getattr(hook, "__name__", "anonymous_hook")
            logger.debug(f"Executing shutdown hook: {hook_name} (priority: {priority})")
            try:
                await hook(app)
            except Exception as e:
                # Keep shutting down the remaining plugins
                logger.error(f"Error in shutdown hook {hook_name}: {e}", exc_info=True)
