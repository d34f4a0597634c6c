from __future__ import annotations

import time
from collections.abc import Callable

from .types import MarketCacheEntry


def _wall_clock_millis() -> int:
    return int(time.time() * 1000)


class MarketCache:
    def __init__(self, clock: Callable[[], int] = _wall_clock_millis) -> None:
        self.clock = clock
        self._entry: MarketCacheEntry | None = None

    def is_fresh(self, max_age_millis: int) -> bool:
        entry = self._entry
        if entry is None:
            return False
        return self.clock() - entry.fetched_at_millis < max_age_millis

    def read(self) -> MarketCacheEntry | None:
        return self._entry

    def write(self, entry: MarketCacheEntry) -> None:
        # Whole-value swap: readers see either the old entry or the new one.
        self._entry = entry

    def clear(self) -> None:
        self._entry = None
