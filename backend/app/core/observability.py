"""
Observability middleware.

When CORRELATION_IDS_ENABLED is set:
- Every request gets a correlation ID (taken from X-Correlation-ID or generated)
- The ID is attached to request logs and echoed in the response headers
"""

import logging
import time
import uuid
from contextvars import ContextVar
from typing import Callable, Optional

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import settings

correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

logger = logging.getLogger("wholesale_sync.requests")


def get_correlation_id() -> Optional[str]:
    """Get current correlation ID from context."""
    return correlation_id_var.get()


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Adds a correlation ID to each request and its response."""

    HEADER_NAME = "X-Correlation-ID"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(self.HEADER_NAME) or str(uuid.uuid4())
        correlation_id_var.set(correlation_id)

        response = await call_next(request)
        response.headers[self.HEADER_NAME] = correlation_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status and timing for each request."""

    EXCLUDED_PATHS = {"/health", "/favicon.ico"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.EXCLUDED_PATHS:
            return await call_next(request)

        start_time = time.time()
        correlation_id = get_correlation_id() or "no-correlation-id"

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                "[%s] %s %s failed after %.2fms: %s",
                correlation_id, request.method, request.url.path, duration_ms, e,
                extra={"correlation_id": correlation_id, "path": request.url.path},
                exc_info=True,
            )
            raise

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "[%s] %s %s completed %s in %.2fms",
            correlation_id, request.method, request.url.path, response.status_code, duration_ms,
            extra={
                "correlation_id": correlation_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        return response


def setup_observability(app: FastAPI) -> None:
    """Register request logging and, when enabled, correlation IDs."""
    app.add_middleware(RequestLoggingMiddleware)
    if settings.correlation_ids_enabled:
        # Added last so it runs first and the ID is set before logging
        app.add_middleware(CorrelationIdMiddleware)
