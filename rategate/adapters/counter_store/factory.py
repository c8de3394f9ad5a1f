"""Factory pattern for creating counter store instances."""

from rategate.adapters.counter_store.base import AbstractCounterStore
from rategate.adapters.counter_store.in_memory import InMemoryCounterStore
from rategate.adapters.counter_store.redis_store import RedisCounterStore
from rategate.core.config import RateLimitSettings, settings
from rategate.core.errors import ValidationAppError


def create_counter_store(rate_settings: RateLimitSettings | None = None) -> AbstractCounterStore:
    """Instantiate the counter store selected by configuration.

    Args:
        rate_settings: Optional rate limit settings; defaults to global settings.

    Returns:
        AbstractCounterStore: Configured store instance.

    Raises:
        ValidationAppError: If the backend is unknown or misconfigured.
    """
    cfg = rate_settings if rate_settings is not None else settings.rate_limit
    backend = cfg.backend.lower()

    if backend == "redis":
        if not cfg.redis_url:
            raise ValidationAppError(
                code="counter_store_missing_url",
                message="Redis backend requires RATE_LIMIT_REDIS_URL",
            )
        return RedisCounterStore.from_url(
            cfg.redis_url,
            timeout_seconds=cfg.store_timeout_seconds,
        )

    if backend == "memory":
        return InMemoryCounterStore()

    raise ValidationAppError(
        code="counter_store_unknown_backend",
        message=f"Unknown counter store backend: '{backend}'. Supported backends: redis, memory",
    )
