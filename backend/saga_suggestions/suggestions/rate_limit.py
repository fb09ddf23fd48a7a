"""Rolling-window budget for evidence provider calls."""

from __future__ import annotations

import threading
import time
from collections import deque
from collections.abc import Callable


class CallBudget:
    """Thread-safe limit of `max_calls` per `window_seconds`."""

    def __init__(
        self,
        max_calls: int = 500,
        window_seconds: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_calls < 0:
            raise ValueError("max_calls must be >= 0")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        self.max_calls = max_calls
        self.window_seconds = window_seconds
        self._clock = clock
        self._calls: deque[float] = deque()
        self._lock = threading.Lock()

    def try_acquire(self) -> bool:
        """Reserve one call if the window has room."""

        with self._lock:
            now = self._clock()
            self._evict(now)
            if len(self._calls) >= self.max_calls:
                return False
            self._calls.append(now)
            return True

    def release(self) -> None:
        """Return the most recent reservation, for a call that never ran."""

        with self._lock:
            if self._calls:
                self._calls.pop()

    def remaining(self) -> int:
        with self._lock:
            self._evict(self._clock())
            return self.max_calls - len(self._calls)

    def reset(self) -> None:
        with self._lock:
            self._calls.clear()

    def _evict(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self._calls and self._calls[0] <= cutoff:
            self._calls.popleft()


class PairCooldown:
    """Remembers pairs evaluated without a suggestion so batches rotate through others."""

    def __init__(
        self,
        cooldown_seconds: float = 86400.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._evaluated: dict[tuple[int, int, int], float] = {}
        self._lock = threading.Lock()

    def mark(self, saga_id: int, pair: tuple[int, int]) -> None:
        with self._lock:
            self._evaluated[(saga_id, *pair)] = self._clock()

    def is_cooling(self, saga_id: int, pair: tuple[int, int]) -> bool:
        with self._lock:
            marked_at = self._evaluated.get((saga_id, *pair))
            if marked_at is None:
                return False
            if self._clock() - marked_at >= self.cooldown_seconds:
                del self._evaluated[(saga_id, *pair)]
                return False
            return True
