"""
Global error handling middleware with tenant context awareness.

Unhandled exceptions become a structured 500. Webhook endpoints never get
internal details back, whatever the environment.
"""

import time
import traceback
from typing import Any

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from pagewire.core.config.settings import settings
from pagewire.core.logging.logger import get_logger


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Catches unhandled exceptions and logs them with request context."""

    async def dispatch(self, request: Request, call_next) -> Response:
        try:
            return await call_next(request)

        except HTTPException as http_exc:
            logger = get_logger(__name__)
            logger.warning(
                f"HTTP {http_exc.status_code} - {request.method} {request.url.path} - "
                f"Detail: {http_exc.detail}"
            )
            raise

        except Exception as exc:
            return self._handle_unexpected_exception(request, exc)

    def _handle_unexpected_exception(
        self, request: Request, exc: Exception
    ) -> JSONResponse:
        logger = get_logger(__name__)
        logger.error(
            f"Unhandled exception in {request.method} {request.url.path}: {exc}",
            exc_info=True,
        )

        if self._is_webhook_endpoint(request.url.path):
            return JSONResponse(
                status_code=500,
                content={"status": "error", "message": "Webhook processing failed"},
            )

        error_response: dict[str, Any] = {
            "detail": "Internal server error",
            "type": "internal_error",
            "timestamp": time.time(),
        }
        if settings.is_development:
            error_response["debug"] = {
                "exception_type": type(exc).__name__,
                "exception_message": str(exc),
                "traceback": traceback.format_exc().split("\n"),
            }
        return JSONResponse(status_code=500, content=error_response)

    @staticmethod
    def _is_webhook_endpoint(path: str) -> bool:
        return path.startswith("/webhook")
