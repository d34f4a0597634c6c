from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Protocol

from .cache import MarketCache
from .errors import NoMarketsAvailable
from .networks import NetworkContracts
from .types import Market, MarketCacheEntry

logger = logging.getLogger(__name__)

DEFAULT_TTL_MILLIS = 15 * 60 * 1000


class MarketSource(Protocol):
    async def fetch_markets(self, network_id: int) -> list[Market]: ...


class MarketAggregator:
    """Finds the first network, in priority order, that has open markets.

    Networks are queried one at a time so a lower-priority network can never
    win over a higher one that answered later.
    """

    def __init__(
        self,
        networks: Sequence[NetworkContracts],
        source: MarketSource,
        cache: MarketCache,
        ttl_millis: int = DEFAULT_TTL_MILLIS,
    ) -> None:
        if not networks:
            raise ValueError("At least one candidate network is required")
        if ttl_millis <= 0:
            raise ValueError("ttl_millis must be positive")
        self.networks = tuple(networks)
        self.source = source
        self.cache = cache
        self.ttl_millis = ttl_millis
        self._lock = asyncio.Lock()

    @property
    def current_network_id(self) -> int | None:
        entry = self.cache.read()
        return entry.network_id if entry else None

    async def get_active_markets(self) -> tuple[Market, ...]:
        cached = self._fresh_markets()
        if cached is not None:
            return cached

        async with self._lock:
            # Another caller may have refreshed while we waited.
            cached = self._fresh_markets()
            if cached is not None:
                return cached
            return await self._refresh()

    def _fresh_markets(self) -> tuple[Market, ...] | None:
        if not self.cache.is_fresh(self.ttl_millis):
            return None
        entry = self.cache.read()
        if entry is None:
            return None
        logger.debug("Using cached markets from network %s", entry.network_id)
        return entry.markets

    async def _refresh(self) -> tuple[Market, ...]:
        for network in self.networks:
            try:
                markets = await self.source.fetch_markets(network.network_id)
            except Exception as exc:
                logger.warning("Market fetch failed for %s: %s", network.name, exc)
                continue

            if not markets:
                logger.info("No markets found on %s", network.name)
                continue

            entry = MarketCacheEntry(
                fetched_at_millis=self.cache.clock(),
                network_id=network.network_id,
                markets=tuple(markets),
            )
            self.cache.write(entry)
            logger.info("Using %d market(s) from %s", len(entry.markets), network.name)
            return entry.markets

        names = ", ".join(network.name for network in self.networks)
        raise NoMarketsAvailable(f"No open markets on any supported network ({names})")

    async def get_featured_market(self) -> Market:
        markets = await self.get_active_markets()
        return select_featured_market(markets, self.cache.clock() // 1000)


def select_featured_market(markets: Sequence[Market], now: int) -> Market:
    """Pick the market to headline.

    Open markets rank ahead of every other status. Within a status, markets
    that have not started yet come first (soonest start wins), then markets
    already underway (most recent start wins). Deeper liquidity breaks ties.
    """
    if not markets:
        raise NoMarketsAvailable("No markets to choose from")

    def rank(market: Market) -> tuple[int, int, int, float]:
        upcoming = market.maturity > now
        return (
            0 if market.is_open else 1,
            0 if upcoming else 1,
            market.maturity if upcoming else -market.maturity,
            -(market.liquidity or 0.0),
        )

    return min(markets, key=rank)
