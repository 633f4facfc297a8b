"""
Health check endpoints.
"""

import time
from typing import Any

from fastapi import APIRouter, Request

from pagewire.core.config.settings import settings
from pagewire.core.logging.logger import get_logger

logger = get_logger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(request: Request) -> dict[str, Any]:
    """
    Basic health check endpoint.

    Reports application status, environment, database reachability and
    whether the credential sweep task is running.
    """
    start_time = time.time()

    database_ok = False
    db_manager = getattr(request.app.state, "db_manager", None)
    if db_manager is not None and db_manager.is_initialized():
        database_ok = await db_manager.health_check()

    sweeper = getattr(request.app.state, "credential_sweeper", None)
    sweep_running = bool(sweeper and sweeper.is_running)
    last_report = sweeper.last_report if sweeper else None

    health_data = {
        "status": "healthy" if database_ok else "degraded",
        "timestamp": time.time(),
        "response_time_ms": round((time.time() - start_time) * 1000, 2),
        "environment": {
            "environment": settings.environment,
            "version": settings.version,
            "log_level": settings.log_level,
        },
        "services": {
            "database": "operational" if database_ok else "unavailable",
            "credential_sweep": "running" if sweep_running else "stopped",
            "reply_generation": "openai" if settings.has_openai else "disabled",
        },
        "last_sweep": last_report.to_dict() if last_report else None,
    }

    logger.debug(f"Health check completed - Status: {health_data['status']}")
    return health_data
