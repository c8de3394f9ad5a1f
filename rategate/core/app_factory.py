"""Application factory for the FastAPI app.

Centralizes app construction (logging, middleware, handlers, rate limiting,
routers) so tests and host services build identical apps.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from rategate.api.routes import health_router
from rategate.core.config import settings
from rategate.core.exception_handlers import setup_exception_handlers
from rategate.core.logging import configure_logging
from rategate.core.middleware import request_id_middleware
from rategate.core.rate_limit import (
    ErrorFactory,
    default_over_limit_error,
    setup_rate_limiting,
)
from rategate.services.rate_limit_service import RateLimitService


def create_app(
    rate_limit_service: RateLimitService | None = None,
    *,
    error_factory: ErrorFactory = default_over_limit_error,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        rate_limit_service: Service to use; built from settings when omitted.
        error_factory: Builds the failure raised for denied requests.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    service = (
        rate_limit_service
        if rate_limit_service is not None
        else RateLimitService.from_settings(settings.rate_limit)
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await service.store.close()

    app = FastAPI(
        title="Rategate",
        description="Per-requester fixed-window rate limiting backed by a shared counter store.",
        version="0.1.0",
        debug=settings.app.debug,
        lifespan=lifespan,
    )

    # Rate headers are rendered inside the request id middleware
    setup_rate_limiting(app, service, error_factory=error_factory)
    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(health_router)

    return app
