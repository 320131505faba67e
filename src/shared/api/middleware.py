"""
Shared API Middleware
======================

Common middleware and exception handlers for all FastAPI applications.
"""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from src.config import settings
from src.core import (
    ApplicationException,
    ConfigurationException,
    ExternalServiceException,
    InvalidTransitionException,
    PersistenceException,
    ResourceNotFoundException,
    ValidationException,
)
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

# First match wins; subclasses before their bases
STATUS_CODES = (
    (ValidationException, 400),
    (ResourceNotFoundException, 404),
    (InvalidTransitionException, 409),
    (PersistenceException, 503),
    (ExternalServiceException, 502),
    (ConfigurationException, 500),
)


def status_code_for(exc: ApplicationException) -> int:
    for exception_type, status_code in STATUS_CODES:
        if isinstance(exc, exception_type):
            return status_code
    return 500


def _correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", "unknown")


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Adds correlation ID to requests for tracing.

    Correlation IDs are essential for tracing requests through
    distributed systems and linking logs.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Get existing correlation ID or generate new one
        correlation_id = request.headers.get("X-Correlation-ID", str(uuid.uuid4()))

        # Store in request state for access in endpoints
        request.state.correlation_id = correlation_id

        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs all requests and responses.

    Provides a request trail for debugging; the audit trail proper is
    written by the audit logger.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = _correlation_id(request)
        tenant_id = request.headers.get("X-Tenant-ID", settings.default_tenant)
        start_time = time.perf_counter()

        logger.info(
            "Request started",
            extra={
                "correlation_id": correlation_id,
                "tenant_id": tenant_id,
                "method": request.method,
                "path": request.url.path,
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
                    "tenant_id": tenant_id,
                    "method": request.method,
                    "path": request.url.path,
                    "error": str(e),
                    "response_time_ms": int((time.perf_counter() - start_time) * 1000)
                }
            )
            raise

        logger.info(
            "Request completed",
            extra={
                "correlation_id": correlation_id,
                "tenant_id": tenant_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "response_time_ms": int((time.perf_counter() - start_time) * 1000)
            }
        )
        return response


def error_response(
    request: Request,
    status_code: int,
    detail: str,
    error_type: str,
    details: dict | None = None
) -> JSONResponse:
    """Build the error body shared by all handlers."""
    return JSONResponse(
        status_code=status_code,
        content={
            "detail": detail,
            "error_type": error_type,
            "details": jsonable_encoder(details or {}),
            "correlation_id": _correlation_id(request)
        }
    )


async def application_exception_handler(request: Request, exc: ApplicationException) -> JSONResponse:
    """
    Translate application exceptions into typed JSON error responses.
    """
    status_code = status_code_for(exc)
    log = logger.error if status_code >= 500 else logger.warning
    log(
        "Request rejected",
        extra={
            "correlation_id": _correlation_id(request),
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "error_message": exc.message,
            "status_code": status_code
        }
    )
    return error_response(request, status_code, exc.message, type(exc).__name__, exc.details)


async def request_validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """Malformed requests are validation failures like any other (400)."""
    errors = jsonable_encoder(exc.errors())
    logger.warning(
        "Request validation failed",
        extra={
            "correlation_id": _correlation_id(request),
            "path": request.url.path,
            "errors": errors
        }
    )
    return error_response(
        request, 400, "Request validation failed", ValidationException.__name__, {"errors": errors}
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler for unhandled exceptions.

    Returns consistent error responses for all exceptions.
    """
    logger.error(
        "Unhandled exception",
        extra={
            "correlation_id": _correlation_id(request),
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "error_message": str(exc)
        },
        exc_info=exc
    )

    # Don't expose internal details in production
    details = {"debug_info": str(exc)} if settings.environment == "development" else {}
    return error_response(request, 500, "Internal server error", "InternalServerError", details)
