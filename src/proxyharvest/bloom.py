from __future__ import annotations

import threading
import time
from typing import Callable, Optional

from rbloom import Bloom


class TimeWindowBloom:
    """
    Generational time-window Bloom filter of recently seen endpoints.

    Keeps `slices` filters that together cover `window_seconds`. Inserts go to
    the current slice, lookups search all of them, and each time a slice's
    duration elapses the oldest one is replaced by an empty filter. Shared
    between harvest worker threads, so every public method takes the lock.
    """

    def __init__(
        self,
        window_seconds: float = 3600.0,
        slices: int = 4,
        capacity_per_slice: int = 100_000,
        error_rate: float = 0.01,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window_seconds = max(1.0, float(window_seconds))
        self.slices = max(1, int(slices))
        self.slice_seconds = self.window_seconds / self.slices
        self.capacity_per_slice = max(1, int(capacity_per_slice))
        self.error_rate = float(error_rate)
        self._clock = clock
        self._lock = threading.Lock()
        self._filters = [self._new_filter() for _ in range(self.slices)]
        self._epoch = clock()
        self._current = 0

    def _new_filter(self) -> Bloom:
        return Bloom(self.capacity_per_slice, self.error_rate)

    def _advance(self, now: Optional[float] = None) -> None:
        t = self._clock() if now is None else float(now)
        steps = int((t - self._epoch) // self.slice_seconds)
        if steps <= 0:
            return
        for _ in range(min(steps, self.slices)):
            self._current = (self._current + 1) % self.slices
            self._filters[self._current] = self._new_filter()
        # whole steps only, so slice boundaries do not drift
        self._epoch += steps * self.slice_seconds

    def add(self, key: str) -> None:
        with self._lock:
            self._advance()
            self._filters[self._current].add(key)

    def contains(self, key: str) -> bool:
        with self._lock:
            self._advance()
            return any(key in bf for bf in self._filters)

    def __contains__(self, key: str) -> bool:
        return self.contains(key)
