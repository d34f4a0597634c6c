from __future__ import annotations

import logging
from decimal import Decimal

from .aggregator import MarketAggregator
from .cache import MarketCache
from .config import Settings
from .errors import InvalidWager
from .executor import TradeExecutor
from .market_data import MarketDataClient
from .networks import NetworkCatalog
from .quotes import QuoteService
from .types import Market, Quote, Side, TradeResult
from .wallet import WalletProvider, switch_network, wallet_from_url

logger = logging.getLogger(__name__)


class WagerClient:
    """Composes market discovery, quoting and execution for one process.

    The client owns the market cache; dropping the client drops the cache.
    """

    def __init__(
        self,
        settings: Settings,
        wallet: WalletProvider | None = None,
        catalog: NetworkCatalog | None = None,
        cache: MarketCache | None = None,
    ) -> None:
        self.settings = settings
        self.catalog = (catalog or NetworkCatalog()).prioritized(settings.network_priority)
        self.cache = cache or MarketCache()
        self.market_data = MarketDataClient(
            url_templates=settings.markets_urls,
            proxy_url=settings.proxy_url,
            api_key=settings.api_key,
            timeout=settings.http_timeout_seconds,
        )
        self.aggregator = MarketAggregator(
            networks=list(self.catalog),
            source=self.market_data,
            cache=self.cache,
            ttl_millis=settings.cache_ttl_seconds * 1000,
        )
        self.quotes = QuoteService(
            self.catalog,
            url_template=settings.quote_url,
            proxy_url=settings.proxy_url,
            api_key=settings.api_key,
            timeout=settings.http_timeout_seconds,
        )
        self.executor = TradeExecutor(
            self.catalog,
            self.quotes,
            slippage_tolerance=settings.slippage_tolerance,
            approve_unlimited=settings.approve_unlimited,
            confirmation_timeout=settings.confirmation_timeout_seconds,
            poll_interval=settings.receipt_poll_interval_seconds,
        )
        self._owns_wallet = wallet is None
        self.wallet = wallet or wallet_from_url(
            settings.wallet_rpc_url, timeout=settings.http_timeout_seconds
        )

    async def __aenter__(self) -> WagerClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self.market_data.close()
        await self.quotes.close()
        if self._owns_wallet:
            close = getattr(self.wallet, "close", None)
            if close is not None:
                await close()
        self.cache.clear()

    async def get_active_markets(self) -> tuple[Market, ...]:
        return await self.aggregator.get_active_markets()

    async def get_featured_market(self) -> Market:
        return await self.aggregator.get_featured_market()

    async def get_quote(self, market: Market, side: Side, stake: Decimal) -> Quote:
        return await self.quotes.get_quote(market, side, stake)

    async def place_bet(self, market: Market, side: Side, stake: Decimal) -> TradeResult:
        return await self.executor.place_bet(market, side, stake, self.wallet)

    async def switch_to_market_network(self, market: Market) -> bool:
        network = self.catalog.get(market.network_id)
        if network is None:
            raise InvalidWager(f"Unsupported network: {self.catalog.name_of(market.network_id)}")
        switched = await switch_network(self.wallet, network)
        if not switched:
            logger.warning("Wallet did not switch to %s", network.name)
        return switched

    def transaction_url(self, market: Market, result: TradeResult) -> str | None:
        return self.catalog.transaction_url(market.network_id, result.transaction_hash)
