"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Required settings are seeded before anything imports rategate.core.config.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("RATE_LIMIT_STORE_FAILURE_MODE", "closed")
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Callable  # noqa: E402

import pytest  # noqa: E402
from starlette.requests import Request  # noqa: E402
from starlette.routing import Route  # noqa: E402


class FakeTime:
    """Deterministic clock used to test window expiry."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def time(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def fake_time() -> FakeTime:
    return FakeTime()


@pytest.fixture
def make_request() -> Callable[..., Request]:
    """Build bare Starlette requests for unit tests (no app involved)."""

    def _make(
        method: str = "POST",
        path: str = "/items",
        *,
        headers: dict[str, str] | None = None,
        route_path: str | None = None,
        client: tuple[str, int] | None = None,
    ) -> Request:
        scope = {
            "type": "http",
            "method": method,
            "path": path,
            "query_string": b"",
            "headers": [
                (k.lower().encode(), v.encode()) for k, v in (headers or {}).items()
            ],
        }
        if route_path is not None:
            scope["route"] = Route(route_path, endpoint=lambda request: None)
        if client is not None:
            scope["client"] = client
        return Request(scope)

    return _make
