"""Allow/deny decision from a rate and a counter reading."""

from __future__ import annotations

from rategate.adapters.counter_store.base import CounterRecord
from rategate.schemas.rate_limit import RateConfig, RateResult


def decide(rate: RateConfig, record: CounterRecord) -> RateResult:
    """Combine the route's rate with the window's count.

    Denial is returned as ``allowed=False``; the reset time is the window's
    regardless of the outcome.
    """
    return RateResult(
        limit=rate.limit,
        remaining=max(rate.limit - record.count, 0),
        reset=record.reset_at,
        window=rate.window,
        allowed=record.count <= rate.limit,
    )
