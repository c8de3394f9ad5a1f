"""Counter key derivation from requester identity and route scope."""

from __future__ import annotations

import hashlib
import logging
from typing import Callable

from fastapi import Request

from rategate.core.errors import ConfigurationAppError

logger = logging.getLogger(__name__)

IdentityExtractor = Callable[[Request], str | None]


def header_identity(header_name: str) -> IdentityExtractor:
    """Build an extractor reading the requester identity from a header."""

    def extract(request: Request) -> str | None:
        return request.headers.get(header_name)

    return extract


api_key_identity = header_identity("X-API-Key")


def client_ip_identity(request: Request) -> str | None:
    """Use the client address as identity (unauthenticated APIs)."""
    return request.client.host if request.client else None


def route_scope(request: Request) -> str:
    """Scope token of the route serving ``request``.

    Uses the route's path template so ``/items/1`` and ``/items/2`` share one
    counter, falling back to the concrete path when no route matched.
    """
    route = request.scope.get("route")
    path = getattr(route, "path", None) or request.url.path
    return f"{request.method.upper()} {path}"


def hash_identity(identity: str) -> str:
    """Digest an identity so raw credentials never reach the store or logs."""
    return hashlib.sha256(identity.encode()).hexdigest()[:32]


class KeyBuilder:
    """Build namespaced counter keys: ``{prefix}:{scope}:{identity digest}``."""

    def __init__(self, identity: IdentityExtractor, *, prefix: str = "rate-limit") -> None:
        self._identity = identity
        self._prefix = prefix

    def identity_for(self, request: Request) -> str:
        """Extract the requester identity for a rate limited request.

        Raises:
            ConfigurationAppError: If no identity can be derived.
        """
        try:
            identity = self._identity(request)
        except Exception as exc:
            logger.error(
                "rate_limit.config_error",
                extra={
                    "reason": "identity_extractor_failed",
                    "error_type": type(exc).__name__,
                    "request_path": request.url.path,
                },
            )
            raise ConfigurationAppError(
                code="identity_extractor_failed",
                message="Could not derive the requester identity for a rate limited route",
            ) from exc

        if not identity:
            logger.error(
                "rate_limit.config_error",
                extra={
                    "reason": "identity_missing",
                    "request_path": request.url.path,
                },
            )
            raise ConfigurationAppError(
                code="identity_missing",
                message="Rate limited route requires a requester identity",
                details={"hint": "Authenticate the request or configure an identity extractor"},
            )
        return identity

    def build(self, request: Request, scope: str) -> str:
        identity = self.identity_for(request)
        return f"{self._prefix}:{scope}:{hash_identity(identity)}"
