"""Request/response logging middleware."""

import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from pagewire.core.config.settings import settings
from pagewire.core.logging.logger import get_logger

SKIP_PATHS = ("/health", "/docs", "/redoc", "/openapi.json", "/favicon.ico")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs method, path, status and duration for every request.

    Bodies and headers are never logged: webhook bodies carry customer
    messages and admin routes carry credentials.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        start_time = time.perf_counter()
        response = await call_next(request)
        process_time_ms = round((time.perf_counter() - start_time) * 1000, 2)

        if settings.is_development:
            response.headers["X-Process-Time"] = str(process_time_ms)

        if not request.url.path.startswith(SKIP_PATHS):
            logger = get_logger(__name__)
            message = (
                f"{request.method} {request.url.path} -> {response.status_code} "
                f"({process_time_ms}ms)"
            )
            if response.status_code >= 500:
                logger.error(message)
            elif response.status_code >= 400:
                logger.warning(message)
            else:
                logger.info(message)

        return response
