"""Rate limiting dependency for FastAPI routes.

This module wires the rate limit service into the HTTP layer.

Design goals:
- Minimal coupling: routes declare their policy through a dependency only.
- Safe defaults: a route is not limited unless it sets ``enabled=True``.
- Denials are rendered here, never inside the decision logic: the service
  returns a RateResult and this layer turns ``allowed=False`` into the
  failure built by the error factory.

Usage:
    @router.post("/items", dependencies=[Depends(RateLimit(enabled=True))])
    async def create_item(): ...
"""

from __future__ import annotations

import time
from typing import Callable

from fastapi import FastAPI, Request

from rategate.core.errors import ConfigurationAppError, RateLimitExceededAppError
from rategate.core.middleware import rate_limit_headers_middleware
from rategate.schemas.rate_limit import RateResult
from rategate.services.policy_resolver import RateProvider, RoutePolicy
from rategate.services.rate_limit_service import RateLimitService


ErrorFactory = Callable[[RateResult], Exception]


def _seconds_until_reset(result: RateResult) -> int:
    # reset comes from the store clock; fall back to the window length when
    # the local clock disagrees with it
    seconds_left = result.reset - int(time.time())
    if not 0 < seconds_left <= result.window:
        return result.window
    return seconds_left


def default_over_limit_error(result: RateResult) -> RateLimitExceededAppError:
    """Build the client-facing failure for a denied request."""
    return RateLimitExceededAppError(
        code="rate_limit_exceeded",
        message=(
            f"Rate limit exceeded. Please wait {result.window} seconds "
            "and try your request again."
        ),
        details={
            "limit": result.limit,
            "remaining": result.remaining,
            "reset": result.reset,
            "window": result.window,
        },
        retry_after=_seconds_until_reset(result),
    )


def setup_rate_limiting(
    app: FastAPI,
    service: RateLimitService,
    *,
    error_factory: ErrorFactory = default_over_limit_error,
) -> None:
    """Attach the rate limit service and header rendering to the app.

    Args:
        app: FastAPI application instance.
        service: Service evaluating every rate limited route.
        error_factory: Builds the failure raised for denied requests.
    """
    app.state.rate_limit_service = service
    app.state.rate_limit_error_factory = error_factory
    app.middleware("http")(rate_limit_headers_middleware)


def get_rate_limit_service(request: Request) -> RateLimitService:
    """Return the service attached to the app serving ``request``.

    Raises:
        ConfigurationAppError: If setup_rate_limiting() was never called.
    """
    service = getattr(request.app.state, "rate_limit_service", None)
    if service is None:
        raise ConfigurationAppError(
            code="rate_limiting_not_configured",
            message="Route declares a rate limit but no rate limit service is configured",
        )
    return service


class RateLimit:
    """FastAPI dependency enforcing a route's rate limit policy.

    When the policy applies, the RateResult is stored on
    ``request.state.rate_limit`` (and returned, so handlers may depend on it
    directly). A denied request raises the error factory's failure before
    the route handler runs.
    """

    def __init__(
        self,
        *,
        enabled: bool = False,
        rate: RateProvider | None = None,
        scope: str | None = None,
        error_factory: ErrorFactory | None = None,
    ) -> None:
        """Declare the route's policy.

        Args:
            enabled: Whether the route is limited at all.
            rate: Provider for the route's rate; the service default when None.
            scope: Counter scope shared with other routes declaring the same
                value; the route itself when None.
            error_factory: Overrides the app-wide failure for this route.
        """
        self.policy = RoutePolicy(enabled=enabled, rate=rate, scope=scope)
        self._error_factory = error_factory

    async def __call__(self, request: Request) -> RateResult | None:
        if not self.policy.enabled:
            return None

        service = get_rate_limit_service(request)
        result = await service.evaluate(request, self.policy)
        if result is None:
            return None

        request.state.rate_limit = result
        if result.allowed:
            return result

        factory = (
            self._error_factory
            or getattr(request.app.state, "rate_limit_error_factory", None)
            or default_over_limit_error
        )
        raise factory(result)
