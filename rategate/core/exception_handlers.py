"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain and unexpected) and return consistent JSON responses with proper
HTTP status codes and traceability.

Design:
- AppError subclasses → appropriate HTTP status (400, 429, 500, 503)
- Unexpected Exception → generic 500 (safety net)
- All responses include request_id for distributed tracing
"""

import logging
from fastapi import Request
from fastapi.responses import JSONResponse

from rategate.core.config import settings
from rategate.core.errors import (
    AppError,
    ConfigurationAppError,
    RateLimitExceededAppError,
    StoreUnavailableAppError,
)
from rategate.core.logging import get_request_id

logger = logging.getLogger(__name__)


def _status_code_for(exc: AppError) -> int:
    if isinstance(exc, RateLimitExceededAppError):
        return 429  # Too Many Requests
    if isinstance(exc, ConfigurationAppError):
        return 500  # Server misconfiguration, not the client's fault
    if isinstance(exc, StoreUnavailableAppError):
        return 503  # Counter store down and failing closed
    return 400  # Default: client error


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    Routes domain errors to appropriate HTTP status codes:
    - RateLimitExceededAppError → 429 Too Many Requests (+ Retry-After)
    - ConfigurationAppError → 500 Internal Server Error
    - StoreUnavailableAppError → 503 Service Unavailable
    - Other AppError → 400 Bad Request

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error details.
    """
    status_code = _status_code_for(exc)

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_id": get_request_id(),
        }
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }

    if exc.details:
        error_content["details"] = exc.details

    headers: dict[str, str] = {}
    if (
        isinstance(exc, RateLimitExceededAppError)
        and exc.retry_after is not None
        and settings.rate_limit.include_retry_after
    ):
        headers["Retry-After"] = str(exc.retry_after)

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
        headers=headers or None,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs detailed information for debugging while returning a generic
    message. No stack traces reach the client.

    Args:
        request: FastAPI request object.
        exc: Exception instance (unexpected).

    Returns:
        JSONResponse with generic error (no implementation details leaked).
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        }
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Order matters: specific handlers registered before general fallback.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
