"""Redis-backed fixed-window counter store.

All increments go through one Lua script, so opening a window (count,
reset time and expiry) and counting into an existing one are each a single
atomic step on the server. The reset time comes from the Redis clock, which
keeps it identical for every service instance sharing the store.
"""

from __future__ import annotations

import logging

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from rategate.adapters.counter_store.base import AbstractCounterStore, CounterRecord
from rategate.core.errors import StoreUnavailableAppError

logger = logging.getLogger(__name__)


# KEYS[1] = counter key, ARGV[1] = window length in seconds
# Returns {count, reset_at}
INCREMENT_SCRIPT = """
local count = redis.call('HINCRBY', KEYS[1], 'count', 1)
local reset_at
if count == 1 then
  local window = tonumber(ARGV[1])
  local now = redis.call('TIME')
  reset_at = tonumber(now[1]) + window
  if tonumber(now[2]) > 0 then
    reset_at = reset_at + 1
  end
  redis.call('HSET', KEYS[1], 'reset_at', reset_at)
  redis.call('EXPIREAT', KEYS[1], reset_at)
else
  reset_at = tonumber(redis.call('HGET', KEYS[1], 'reset_at'))
end
return {count, reset_at}
"""


class RedisCounterStore(AbstractCounterStore):
    """Counter store shared by every instance through Redis."""

    def __init__(self, client: aioredis.Redis) -> None:
        self._client = client
        self._increment = client.register_script(INCREMENT_SCRIPT)

    @classmethod
    def from_url(cls, url: str, *, timeout_seconds: float) -> "RedisCounterStore":
        """Build a store with its own connection pool.

        Args:
            url: Redis connection URL.
            timeout_seconds: Connect and socket timeout for each round-trip.

        Returns:
            RedisCounterStore bound to a new client.
        """
        client = aioredis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=timeout_seconds,
            socket_timeout=timeout_seconds,
        )
        return cls(client)

    async def increment(self, key: str, window_seconds: int) -> CounterRecord:
        """Count one occurrence for ``key`` with the increment script.

        Args:
            key: Composite counter key.
            window_seconds: Lifetime of a newly opened window.

        Returns:
            CounterRecord reported by the script.

        Raises:
            ValueError: If key is empty or window_seconds is invalid.
            StoreUnavailableAppError: On connection errors, timeouts or script errors.
        """
        if not key:
            raise ValueError("key must be a non-empty string")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        try:
            count, reset_at = await self._increment(keys=[key], args=[window_seconds])
        except RedisError as exc:
            logger.warning(
                "counter_store.redis_error",
                extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
            )
            raise StoreUnavailableAppError(
                code="counter_store_unavailable",
                message="Rate limit counter store is unavailable",
                details={"backend": "redis"},
            ) from exc

        return CounterRecord(count=int(count), reset_at=int(reset_at))

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError:
            return False

    async def close(self) -> None:
        await self._client.aclose()
