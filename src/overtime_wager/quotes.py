from __future__ import annotations

import logging
import math
from decimal import Decimal
from typing import Any

import httpx

from .errors import InvalidWager, QuoteUnavailable
from .http import EndpointChain, EndpointUnavailable
from .networks import NetworkCatalog
from .odds import format_american
from .types import Market, Quote, Side

logger = logging.getLogger(__name__)

V2_QUOTE_URL = "https://api.overtime.io/overtime-v2/networks/{network_id}/quote"


class QuoteService:
    """Prices a specific stake against a market's AMM curve.

    Quotes are never cached: a quote is only valid for the stake it was
    computed for, and liquidity moves between requests.
    """

    def __init__(
        self,
        catalog: NetworkCatalog,
        url_template: str = V2_QUOTE_URL,
        proxy_url: str | None = None,
        api_key: str | None = None,
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.catalog = catalog
        self.url_template = url_template
        self._client = client or httpx.AsyncClient(timeout=timeout)
        headers = {"x-api-key": api_key} if api_key else None
        self.chain = EndpointChain(self._client, proxy_url=proxy_url, headers=headers)

    async def close(self) -> None:
        await self._client.aclose()

    async def get_quote(self, market: Market, side: Side, stake: Decimal) -> Quote:
        validate_stake(stake)
        market.odds_for(side)
        network = self.catalog.get(market.network_id)
        if network is None:
            raise InvalidWager(f"Unsupported network: {self.catalog.name_of(market.network_id)}")

        body = build_quote_request(market, side, stake, network.settlement_token_symbol)
        url = self.url_template.format(network_id=market.network_id)
        try:
            payload = await self.chain.post_json([url], body)
        except EndpointUnavailable as exc:
            raise QuoteUnavailable(f"Quote endpoint unreachable: {exc}") from exc

        quote = parse_quote_response(payload, stake, side)
        logger.info(
            "Quote market=%s side=%s stake=%s multiplier=%.4f (%s)",
            market.address,
            side.name.lower(),
            stake,
            quote.decimal_payout_multiplier,
            format_american(quote.american),
        )
        return quote


def validate_stake(stake: Decimal) -> None:
    if not isinstance(stake, Decimal):
        raise InvalidWager(f"Stake must be a Decimal, got {type(stake).__name__}")
    if not stake.is_finite() or stake <= 0:
        raise InvalidWager(f"Stake must be strictly positive, got {stake}")


def build_quote_request(market: Market, side: Side, stake: Decimal, collateral: str) -> dict[str, Any]:
    return {
        "buyInAmount": float(stake),
        "collateral": collateral,
        "tradeData": [
            {
                "gameId": market.game_id,
                "sportId": market.league_id or 0,
                "typeId": market.type_id,
                "maturity": market.maturity,
                "status": int(market.status),
                "line": market.line,
                "playerId": 0,
                "odds": [odds.implied for odds in market.odds],
                "merkleProof": [],
                "position": int(side),
                "combinedPositions": [[] for _ in market.odds],
                "live": False,
            }
        ],
    }


def parse_quote_response(payload: Any, stake: Decimal, side: Side) -> Quote:
    if not isinstance(payload, dict):
        raise QuoteUnavailable("Quote response is not a JSON object")

    source = payload
    quote_data = payload.get("quoteData")
    if isinstance(quote_data, dict):
        if quote_data.get("error"):
            raise QuoteUnavailable(f"Quote rejected: {quote_data['error']}")
        total = quote_data.get("totalQuote")
        if isinstance(total, dict):
            source = total

    multiplier = _finite_number(source.get("payoutMultiplier", source.get("decimal")))
    if multiplier is None or multiplier <= 1.0:
        raise QuoteUnavailable(f"Quote returned an invalid payout multiplier: {payload!r}")

    implied = _finite_number(source.get("impliedProbability", source.get("normalizedImplied")))
    if implied is None or not 0.0 < implied < 1.0:
        implied = 1.0 / multiplier

    return Quote(
        decimal_payout_multiplier=multiplier,
        implied_probability=implied,
        stake=stake,
        side=side,
    )


def _finite_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None
