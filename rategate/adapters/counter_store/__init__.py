"""Counter store adapters.

The windowed counter behind every rate limit decision. Redis is the shared
store for real deployments; the in-memory store serves single-process
development and tests.
"""

from rategate.adapters.counter_store.base import AbstractCounterStore, CounterRecord
from rategate.adapters.counter_store.factory import create_counter_store
from rategate.adapters.counter_store.in_memory import InMemoryCounterStore
from rategate.adapters.counter_store.redis_store import RedisCounterStore

__all__ = [
    "AbstractCounterStore",
    "CounterRecord",
    "InMemoryCounterStore",
    "RedisCounterStore",
    "create_counter_store",
]
