"""
Shared API Middleware
======================

Common middleware for the FastAPI application.
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from resolveit.core import (
    ApplicationException,
    ResourceNotFoundException,
    ValidationException,
)
from resolveit.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Adds correlation ID to requests for tracing.

    Reuses an incoming X-Correlation-ID header or generates one.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get("X-Correlation-ID", str(uuid.uuid4()))
        request.state.correlation_id = correlation_id

        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """Logs all requests and responses."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = getattr(request.state, "correlation_id", "unknown")
        start_time = time.perf_counter()

        logger.info(
            "Request started",
            extra={
                "correlation_id": correlation_id,
                "method": request.method,
                "url": str(request.url),
                "client": request.client.host if request.client else None
            }
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                extra={
                    "correlation_id": correlation_id,
                    "method": request.method,
                    "url": str(request.url),
                    "error": str(e),
                    "response_time_ms": int((time.perf_counter() - start_time) * 1000)
                }
            )
            raise

        logger.info(
            "Request completed",
            extra={
                "correlation_id": correlation_id,
                "method": request.method,
                "url": str(request.url),
                "status_code": response.status_code,
                "response_time_ms": int((time.perf_counter() - start_time) * 1000)
            }
        )
        return response


def _error_body(request: Request, detail: str, **extra) -> dict:
    return {
        "detail": detail,
        "correlation_id": getattr(request.state, "correlation_id", "unknown"),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        **extra,
    }


async def application_exception_handler(request: Request, exc: ApplicationException) -> JSONResponse:
    """
    Map application exceptions that escaped a controller.

    ResourceNotFoundException -> 404, ValidationException -> 422, others -> 500.
    """
    if isinstance(exc, ResourceNotFoundException):
        status_code = 404
    elif isinstance(exc, ValidationException):
        status_code = 422
    else:
        return await global_exception_handler(request, exc)

    return JSONResponse(
        status_code=status_code,
        content=_error_body(request, exc.message, details=exc.details or None)
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler for unhandled exceptions.

    Internal details are only exposed in development.
    """
    correlation_id = getattr(request.state, "correlation_id", "unknown")

    logger.error(
        "Unhandled exception",
        extra={
            "correlation_id": correlation_id,
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "error_message": str(exc)
        }
    )

    is_dev = getattr(getattr(request.app.state, "settings", None), "environment", None) == "development"

    return JSONResponse(
        status_code=500,
        content=_error_body(
            request,
            "Internal server error",
            debug_info=str(exc) if is_dev else None,
        )
    )
