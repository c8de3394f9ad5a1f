"""Counter store interfaces.

The rate limit service depends on this abstraction (not the concrete
implementation) so the shared Redis store and the single-process memory
store are interchangeable.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class CounterRecord:
    """State of one fixed window after an increment.

    Attributes:
        count: Occurrences counted in the current window, including this one.
        reset_at: UNIX epoch seconds when the window ends. Set once, by the
            increment that opened the window.
    """

    count: int
    reset_at: int


class AbstractCounterStore(ABC):
    """Interface for windowed counter stores."""

    @abstractmethod
    async def increment(self, key: str, window_seconds: int) -> CounterRecord:
        """Atomically count one occurrence for ``key``.

        Opens a new window of ``window_seconds`` when no live record exists,
        otherwise increments the live record without touching its expiry.

        Args:
            key: Composite counter key.
            window_seconds: Lifetime of a newly opened window.

        Returns:
            CounterRecord for the window the occurrence was counted in.

        Raises:
            StoreUnavailableAppError: If the store cannot be reached.
        """
        raise NotImplementedError

    async def ping(self) -> bool:
        """Return True when the store is reachable."""
        return True

    async def close(self) -> None:
        """Release connections held by the store."""
        return None
