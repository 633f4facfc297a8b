"""
Rich console logging with tenant and sender prefixes.

Every pagewire module logs through ``get_logger(__name__)``. The returned
logger reads the tenant and sender of the current event task from
contextvars at call time, so module-level loggers stay correct when many
events are processed concurrently.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

from pagewire.core.config.settings import settings

from .context import get_current_tenant_context, get_current_user_context

_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

_console = Console(
    theme=Theme(
        {"info": "cyan", "warning": "yellow", "error": "bold red", "debug": "dim white"}
    )
)


class CompactFormatter(logging.Formatter):
    """Drop the ``pagewire.`` package prefix: pagewire.credentials.sweep -> credentials.sweep."""

    def format(self, record):
        if record.name.startswith("pagewire."):
            record.name = ".".join(record.name.split(".")[-2:])
        return super().format(record)


class ContextLogger:
    """Prefixes messages with ``[T:<tenant>][U:<sender>]`` when an event context is set."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def _prefixed(self, message: str) -> str:
        prefix = ""
        tenant_id = get_current_tenant_context()
        user_id = get_current_user_context()
        if tenant_id:
            prefix += f"[T:{tenant_id}]"
        if user_id:
            prefix += f"[U:{user_id}]"
        return f"{prefix} {message}" if prefix else message

    def debug(self, message: str, *args, **kwargs) -> None:
        self.logger.debug(self._prefixed(message), *args, **kwargs)

    def info(self, message: str, *args, **kwargs) -> None:
        self.logger.info(self._prefixed(message), *args, **kwargs)

    def warning(self, message: str, *args, **kwargs) -> None:
        self.logger.warning(self._prefixed(message), *args, **kwargs)

    def error(self, message: str, *args, **kwargs) -> None:
        self.logger.error(self._prefixed(message), *args, **kwargs)


def setup_logging(*, level: str = "INFO", log_dir: str | None = None) -> None:
    """
    Configure the root logger.

    Args:
        level: One of DEBUG, INFO, WARNING, ERROR; anything else means INFO
        log_dir: When set, also write a daily ``pagewire_YYYYMMDD.log`` there
    """
    lvl = level.upper() if level.upper() in _LEVELS else "INFO"

    console_handler = RichHandler(
        console=_console,
        rich_tracebacks=True,
        show_time=True,
        show_level=True,
        markup=False,
    )
    # RichHandler renders level and time itself
    console_handler.setFormatter(CompactFormatter("[%(name)s] %(message)s"))
    handlers: list[logging.Handler] = [console_handler]

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        logfile = os.path.join(log_dir, f"pagewire_{datetime.now():%Y%m%d}.log")
        file_handler = logging.FileHandler(logfile, encoding="utf-8")
        file_handler.setFormatter(
            CompactFormatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
        )
        handlers.append(file_handler)

    logging.basicConfig(level=lvl, handlers=handlers, force=True)

    # Engine echo and access logs drown out event processing at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)

    get_app_logger().info(
        f"Logging initialized ({lvl}{', file: ' + log_dir if log_dir else ''})"
    )


def setup_app_logging() -> None:
    """Configure logging from settings; DEV also logs to daily files."""
    setup_logging(
        level=settings.log_level,
        log_dir=settings.log_dir if settings.is_development else None,
    )


def get_logger(name: str) -> ContextLogger:
    return ContextLogger(logging.getLogger(name))


def get_app_logger() -> ContextLogger:
    """Logger for startup, shutdown and other process-level events."""
    return get_logger("pagewire.app")
