from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(request: Request) -> dict:
    """Health check endpoint.

    Reports whether the counter store behind rate limiting is reachable.
    The endpoint itself stays 200 so load balancers keep routing; a store
    outage is reported as "degraded" together with the configured failure
    mode, which tells whether protected routes currently pass or fail.

    Returns:
        dict: "status", and "counter_store"/"failure_mode" when rate
            limiting is configured.
    """

    service = getattr(request.app.state, "rate_limit_service", None)
    if service is None:
        return {"status": "ok"}

    reachable = await service.store.ping()
    return {
        "status": "ok" if reachable else "degraded",
        "counter_store": "ok" if reachable else "unavailable",
        "failure_mode": service.failure_mode,
    }
