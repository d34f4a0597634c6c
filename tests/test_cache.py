from overtime_wager.cache import MarketCache
from overtime_wager.types import MarketCacheEntry


class FakeClock:
    def __init__(self, now: int = 1_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


def test_empty_cache_is_never_fresh() -> None:
    cache = MarketCache(clock=FakeClock())
    assert cache.read() is None
    assert cache.is_fresh(60_000) is False


def test_fresh_within_max_age_then_stale() -> None:
    clock = FakeClock()
    cache = MarketCache(clock=clock)
    cache.write(MarketCacheEntry(fetched_at_millis=clock.now, network_id=10, markets=()))

    clock.now += 59_999
    assert cache.is_fresh(60_000) is True
    clock.now += 1
    assert cache.is_fresh(60_000) is False


def test_write_replaces_whole_entry() -> None:
    clock = FakeClock()
    cache = MarketCache(clock=clock)
    first = MarketCacheEntry(fetched_at_millis=1, network_id=10, markets=())
    second = MarketCacheEntry(fetched_at_millis=2, network_id=42161, markets=())

    cache.write(first)
    cache.write(second)
    assert cache.read() is second

    cache.clear()
    assert cache.read() is None
