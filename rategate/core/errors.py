"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional so each error only carries what is relevant.
    """

    code: str
    message: str
    hint: str
    http_status: int
    retry_after: int
    limit: int
    remaining: int
    reset: int
    window: int
    scope: str
    backend: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class ConfigurationAppError(AppError):
    """Raised when a protected route cannot be evaluated.

    Covers a rate provider that fails or returns an invalid rate, and a
    request whose identity cannot be derived. Never retried.
    """


class StoreUnavailableAppError(AppError):
    """Raised when the counter store cannot be reached in time."""


@dataclass
class RateLimitExceededAppError(AppError):
    """Client-facing denial built at the HTTP boundary.

    Attributes:
        retry_after: Seconds until the current window resets.
    """

    retry_after: int | None = None
