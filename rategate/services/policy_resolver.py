"""Route policy resolution.

Decides whether a request to a protected route is rate limited at all and,
if so, with which limit and window.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable

from fastapi import Request
from pydantic import ValidationError

from rategate.core.errors import ConfigurationAppError
from rategate.schemas.rate_limit import RateConfig

logger = logging.getLogger(__name__)

RateProvider = Callable[[Request], RateConfig | Mapping[str, Any]]

# Verbs that are counted; everything else (PUT, PATCH, HEAD, ...) passes through
LIMITED_METHODS = frozenset({"GET", "POST", "DELETE"})


@dataclass(frozen=True)
class RoutePolicy:
    """Static rate limit policy declared by a route.

    Attributes:
        enabled: Routes are only limited when this is explicitly True.
        rate: Provider of the route's rate; the limiter default when None.
        scope: Explicit counter scope. Routes declaring the same scope share
            one budget; None scopes the counter to the route itself.
    """

    enabled: bool = False
    rate: RateProvider | None = None
    scope: str | None = None


def static_rate(limit: int, window: int) -> RateProvider:
    """Build a provider that always returns the same rate.

    Raises:
        ValidationError: If limit or window are not positive integers.
    """
    config = RateConfig(limit=limit, window=window)

    def provider(request: Request) -> RateConfig:
        return config

    return provider


class PolicyResolver:
    """Resolve the effective rate for a request, or skip it."""

    def __init__(self, default_rate: RateProvider) -> None:
        self._default_rate = default_rate

    def applies(self, policy: RoutePolicy, method: str) -> bool:
        return policy.enabled and method.upper() in LIMITED_METHODS

    def resolve(self, policy: RoutePolicy, request: Request) -> RateConfig | None:
        """Return the rate for this request, or None when it is not limited.

        The provider runs on every qualifying request; rates may depend on
        the request itself and are never memoized.

        Args:
            policy: The route's declared policy.
            request: Incoming request.

        Returns:
            RateConfig to enforce, or None to skip limiting.

        Raises:
            ConfigurationAppError: If the provider fails or returns an invalid rate.
        """
        if not self.applies(policy, request.method):
            return None

        provider = policy.rate or self._default_rate
        try:
            raw = provider(request)
        except Exception as exc:
            logger.error(
                "rate_limit.config_error",
                extra={
                    "reason": "rate_provider_failed",
                    "error_type": type(exc).__name__,
                    "request_path": request.url.path,
                },
            )
            raise ConfigurationAppError(
                code="rate_provider_failed",
                message="Rate provider failed for a rate limited route",
            ) from exc

        if isinstance(raw, RateConfig):
            return raw

        try:
            return RateConfig.model_validate(dict(raw) if isinstance(raw, Mapping) else raw)
        except ValidationError as exc:
            logger.error(
                "rate_limit.config_error",
                extra={
                    "reason": "invalid_rate",
                    "request_path": request.url.path,
                },
            )
            raise ConfigurationAppError(
                code="invalid_rate",
                message="Rate provider returned an invalid rate",
                details={"hint": "Return positive integers for 'limit' and 'window'"},
            ) from exc
