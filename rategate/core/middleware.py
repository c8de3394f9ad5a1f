"""HTTP middleware for request correlation and rate limit headers.

- request_id_middleware accepts an incoming X-Request-ID header or generates
  a UUID, stores it in contextvars for log correlation, and echoes it (plus
  the request duration) on the response.
- rate_limit_headers_middleware renders the rate metadata of a rate limited
  route on every response it produced, allowed or denied.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from rategate.core.config import settings
from rategate.core.logging import clear_request_id, set_request_id


async def request_id_middleware(request: Request, call_next) -> Response:
    """HTTP middleware for request ID generation and propagation.

    If the client provides the configured request id header, that value is
    used; otherwise a new UUID is generated. The id is stored in contextvars
    for the lifetime of the request and cleared afterwards.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The response with request id and duration headers added.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response


async def rate_limit_headers_middleware(request: Request, call_next) -> Response:
    """Add X-Rate-Limit-* headers when the route's rate limit applied.

    Requests to routes that were not limited carry no rate headers.
    """

    response: Response = await call_next(request)
    result = getattr(request.state, "rate_limit", None)
    if result is not None:
        response.headers.update(result.headers())
    return response
