"""In-memory fixed-window counter store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
  Use the Redis store whenever more than one process serves traffic.
- Thread-safe: uses a lock around shared state.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from rategate.adapters.counter_store.base import AbstractCounterStore, CounterRecord


@dataclass
class _WindowState:
    count: int
    reset_at: int


class InMemoryCounterStore(AbstractCounterStore):
    """Counter store keeping windows in a process-local dict.

    A window lives exactly ``window_seconds`` from the increment that opened
    it. Expired windows are indistinguishable from missing ones and are
    dropped lazily, plus a periodic sweep so abandoned keys do not pile up.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.time,
        sweep_every: int = 1024,
    ) -> None:
        """Initialize the in-memory store.

        Args:
            clock: Time source function returning UNIX time in seconds.
            sweep_every: Number of increments between full expiry sweeps.

        Raises:
            ValueError: If sweep_every is invalid.
        """
        if sweep_every < 1:
            raise ValueError("sweep_every must be >= 1")

        self._clock = clock
        self._sweep_every = sweep_every
        self._lock = threading.RLock()
        self._state_by_key: dict[str, _WindowState] = {}
        self._increments = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._state_by_key)

    def _sweep_expired_locked(self, now: float) -> None:
        expired = [k for k, s in self._state_by_key.items() if s.reset_at <= now]
        for key in expired:
            del self._state_by_key[key]

    async def increment(self, key: str, window_seconds: int) -> CounterRecord:
        """Count one occurrence for ``key`` in its current window.

        Args:
            key: Composite counter key.
            window_seconds: Lifetime of a newly opened window.

        Returns:
            CounterRecord with the updated count and the window's reset time.

        Raises:
            ValueError: If key is empty or window_seconds is invalid.
        """
        if not key:
            raise ValueError("key must be a non-empty string")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        with self._lock:
            now = self._clock()
            self._increments += 1
            if self._increments % self._sweep_every == 0:
                self._sweep_expired_locked(now)

            state = self._state_by_key.get(key)
            if state is None or state.reset_at <= now:
                state = _WindowState(count=0, reset_at=math.ceil(now) + window_seconds)
                self._state_by_key[key] = state

            state.count += 1
            return CounterRecord(count=state.count, reset_at=state.reset_at)
