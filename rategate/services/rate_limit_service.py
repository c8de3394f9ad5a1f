"""Rate limit service orchestrating policy, keys, counting and decisions.

For every request to a protected route it:
- Resolves whether the route's policy applies and with which rate
- Derives the counter key from the requester identity and the route scope
- Counts the request in the shared store within a bounded timeout
- Turns the reading into a RateResult (denial is data, not an exception)

Store outages are handled according to the configured failure mode: fail
open skips limiting for the request, fail closed surfaces the outage.
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import Request

from rategate.adapters.counter_store.base import AbstractCounterStore
from rategate.adapters.counter_store.factory import create_counter_store
from rategate.core.config import RateLimitSettings, StoreFailureMode, settings
from rategate.core.errors import StoreUnavailableAppError, ValidationAppError
from rategate.schemas.rate_limit import RateResult
from rategate.services.decision_engine import decide
from rategate.services.key_builder import (
    IdentityExtractor,
    KeyBuilder,
    api_key_identity,
    client_ip_identity,
    header_identity,
    route_scope,
)
from rategate.services.policy_resolver import (
    PolicyResolver,
    RateProvider,
    RoutePolicy,
    static_rate,
)

logger = logging.getLogger(__name__)


def _identity_from_settings(cfg: RateLimitSettings) -> IdentityExtractor:
    if cfg.identity_source == "client_ip":
        return client_ip_identity
    if cfg.identity_header.lower() == "x-api-key":
        return api_key_identity
    return header_identity(cfg.identity_header)


class RateLimitService:
    """Evaluate requests against route policies using a shared counter store."""

    def __init__(
        self,
        *,
        store: AbstractCounterStore,
        resolver: PolicyResolver,
        key_builder: KeyBuilder,
        failure_mode: StoreFailureMode,
        timeout_seconds: float,
        enabled: bool = True,
    ) -> None:
        """Initialize the service.

        Args:
            store: Counter store holding every window.
            resolver: Policy resolver with the default rate.
            key_builder: Counter key builder with the identity extractor.
            failure_mode: 'open' or 'closed'; required, there is no default.
            timeout_seconds: Upper bound for one store increment.
            enabled: Global switch; when False nothing is limited.

        Raises:
            ValidationAppError: If failure_mode or timeout_seconds are invalid.
        """
        if failure_mode not in ("open", "closed"):
            raise ValidationAppError(
                code="invalid_failure_mode",
                message=f"Unknown store failure mode: '{failure_mode}'. Use 'open' or 'closed'",
            )
        if timeout_seconds <= 0:
            raise ValidationAppError(
                code="invalid_store_timeout",
                message="Store timeout must be a positive number of seconds",
            )

        self.store = store
        self._resolver = resolver
        self._key_builder = key_builder
        self._failure_mode = failure_mode
        self._timeout_seconds = timeout_seconds
        self._enabled = enabled

    @classmethod
    def from_settings(
        cls,
        rate_settings: RateLimitSettings | None = None,
        *,
        store: AbstractCounterStore | None = None,
        default_rate: RateProvider | None = None,
        identity: IdentityExtractor | None = None,
    ) -> "RateLimitService":
        """Build a service from configuration, with optional overrides.

        Args:
            rate_settings: Optional rate limit settings; defaults to global settings.
            store: Counter store; built from settings when omitted.
            default_rate: Provider for routes that declare no rate.
            identity: Identity extractor; built from settings when omitted.

        Returns:
            RateLimitService ready to evaluate requests.
        """
        cfg = rate_settings if rate_settings is not None else settings.rate_limit
        return cls(
            store=store if store is not None else create_counter_store(cfg),
            resolver=PolicyResolver(
                default_rate
                if default_rate is not None
                else static_rate(cfg.default_limit, cfg.default_window_seconds)
            ),
            key_builder=KeyBuilder(
                identity if identity is not None else _identity_from_settings(cfg),
                prefix=cfg.key_prefix,
            ),
            failure_mode=cfg.store_failure_mode,
            timeout_seconds=cfg.store_timeout_seconds,
            enabled=cfg.enabled,
        )

    @property
    def failure_mode(self) -> StoreFailureMode:
        return self._failure_mode

    async def evaluate(self, request: Request, policy: RoutePolicy) -> RateResult | None:
        """Count the request and decide whether it may proceed.

        Args:
            request: Incoming request.
            policy: The route's declared policy.

        Returns:
            RateResult when the policy applied (allowed or denied), None when
            the request is not limited or the store failed open.

        Raises:
            ConfigurationAppError: If the rate or identity cannot be resolved.
            StoreUnavailableAppError: If the store failed and the mode is 'closed'.
        """
        if not self._enabled:
            return None

        rate = self._resolver.resolve(policy, request)
        if rate is None:
            logger.debug(
                "rate_limit.skipped",
                extra={
                    "request_method": request.method,
                    "request_path": request.url.path,
                    "policy_enabled": policy.enabled,
                },
            )
            return None

        scope = policy.scope or route_scope(request)
        key = self._key_builder.build(request, scope)

        try:
            record = await asyncio.wait_for(
                self.store.increment(key, rate.window),
                timeout=self._timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            error = StoreUnavailableAppError(
                code="counter_store_timeout",
                message="Rate limit counter store did not answer in time",
                details={"context": {"timeout_s": self._timeout_seconds}},
            )
            return self._on_store_failure(error, scope, cause=exc)
        except StoreUnavailableAppError as exc:
            return self._on_store_failure(exc, scope, cause=exc.__cause__)

        result = decide(rate, record)
        log_extra = {
            "scope": scope,
            "key_hash": key.rsplit(":", 1)[-1][:16],
            "limit": result.limit,
            "remaining": result.remaining,
            "reset": result.reset,
            "window_s": result.window,
        }
        if result.allowed:
            logger.info("rate_limit.allowed", extra=log_extra)
        else:
            logger.warning("rate_limit.exceeded", extra=log_extra)
        return result

    def _on_store_failure(
        self,
        error: StoreUnavailableAppError,
        scope: str,
        *,
        cause: BaseException | None,
    ) -> None:
        logger.warning(
            "rate_limit.store_unavailable",
            extra={
                "scope": scope,
                "error_code": error.code,
                "failure_mode": self._failure_mode,
            },
        )
        if self._failure_mode == "open":
            return None
        raise error from cause
