"""Tests for global exception handlers.

Validates that all exception types are handled consistently with
proper HTTP status codes, error format, and no information leakage.
"""

import json
from unittest.mock import MagicMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from rategate.core.errors import (
    AppError,
    ConfigurationAppError,
    RateLimitExceededAppError,
    StoreUnavailableAppError,
    ValidationAppError,
)
from rategate.core.exception_handlers import (
    general_exception_handler,
    setup_exception_handlers,
)


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    """Create test client with handlers enabled."""
    return TestClient(app_with_handlers, raise_server_exceptions=False)


def _raising(app: FastAPI, path: str, exc: Exception) -> None:
    @app.get(path)
    async def endpoint():
        raise exc


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    @pytest.mark.parametrize(
        ("exc", "status_code"),
        [
            (ValidationAppError(code="bad_input", message="Bad input"), 400),
            (ConfigurationAppError(code="identity_missing", message="No identity"), 500),
            (StoreUnavailableAppError(code="counter_store_unavailable", message="Down"), 503),
            (RateLimitExceededAppError(code="rate_limit_exceeded", message="Slow down"), 429),
        ],
    )
    def test_status_code_by_error_type(
        self, client: TestClient, app_with_handlers: FastAPI, exc: AppError, status_code: int
    ):
        _raising(app_with_handlers, "/boom", exc)

        response = client.get("/boom")

        assert response.status_code == status_code
        assert response.json()["error"]["code"] == exc.code

    def test_error_includes_details_when_provided(self, client: TestClient, app_with_handlers: FastAPI):
        _raising(
            app_with_handlers,
            "/details",
            ConfigurationAppError(
                code="invalid_rate",
                message="Rate provider returned an invalid rate",
                details={"hint": "Return positive integers"},
            ),
        )

        data = client.get("/details").json()

        assert data["error"]["details"]["hint"] == "Return positive integers"

    def test_error_response_format_is_consistent(self, client: TestClient, app_with_handlers: FastAPI):
        _raising(app_with_handlers, "/format", ValidationAppError(code="test", message="test"))

        data = client.get("/format").json()

        assert set(data["error"]) == {"code", "message", "request_id"}

    def test_rate_limit_error_sets_retry_after(self, client: TestClient, app_with_handlers: FastAPI):
        _raising(
            app_with_handlers,
            "/limited",
            RateLimitExceededAppError(
                code="rate_limit_exceeded",
                message="Rate limit exceeded",
                retry_after=42,
            ),
        )

        response = client.get("/limited")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "42"

    def test_retry_after_can_be_disabled(self, client: TestClient, app_with_handlers: FastAPI):
        _raising(
            app_with_handlers,
            "/limited-quiet",
            RateLimitExceededAppError(
                code="rate_limit_exceeded",
                message="Rate limit exceeded",
                retry_after=42,
            ),
        )

        with patch("rategate.core.exception_handlers.settings") as mock_settings:
            mock_settings.rate_limit.include_retry_after = False
            response = client.get("/limited-quiet")

        assert response.status_code == 429
        assert "Retry-After" not in response.headers

    def test_app_error_str_is_message(self):
        assert str(StoreUnavailableAppError(code="x", message="Store down")) == "Store down"


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_unexpected_exception_returns_generic_500(self, client: TestClient, app_with_handlers: FastAPI):
        _raising(app_with_handlers, "/crash", RuntimeError("redis password is hunter2"))

        response = client.get("/crash")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "internal_server_error"
        assert "hunter2" not in response.text

    @pytest.mark.asyncio
    async def test_general_exception_handler_never_leaks_stack_trace(self):
        request = MagicMock()
        request.url.path = "/test"
        request.method = "GET"

        response = await general_exception_handler(request, ValueError("Test error with details"))

        body = json.loads(bytes(response.body).decode())
        assert response.status_code == 500
        assert "request_id" in body["error"]
        assert "Traceback" not in response.body.decode()
        assert "ValueError" not in response.body.decode()


class TestErrorHandlerIntegration:
    """Integration tests for exception handler setup."""

    def test_setup_exception_handlers_registers_handlers(self, app_with_handlers: FastAPI):
        assert AppError in app_with_handlers.exception_handlers
        assert Exception in app_with_handlers.exception_handlers

    def test_multiple_handler_setups_does_not_fail(self):
        app = FastAPI()

        setup_exception_handlers(app)
        setup_exception_handlers(app)

        assert AppError in app.exception_handlers
