from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Literal

import httpx

from .http import EndpointChain
from .types import Market, MarketStatus, Odds

logger = logging.getLogger(__name__)

V2_MARKETS_URL = "https://api.overtime.io/overtime-v2/networks/{network_id}/markets"
V1_MARKETS_URL = "https://api.thalesmarket.io/overtime/markets/active?networkId={network_id}"
DEFAULT_MARKETS_URLS = (V2_MARKETS_URL, V1_MARKETS_URL)

_STATUS_NAMES = {
    "open": MarketStatus.OPEN,
    "ongoing": MarketStatus.OPEN,
    "paused": MarketStatus.PAUSED,
    "resolved": MarketStatus.RESOLVED,
    "canceled": MarketStatus.CANCELED,
    "cancelled": MarketStatus.CANCELED,
}


@dataclass(frozen=True)
class MarketPayload:
    kind: Literal["flat", "grouped"]
    records: tuple[tuple[str | None, dict[str, Any]], ...]


class MarketDataClient:
    def __init__(
        self,
        url_templates: Sequence[str] = DEFAULT_MARKETS_URLS,
        proxy_url: str | None = None,
        api_key: str | None = None,
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not url_templates:
            raise ValueError("At least one market-data URL template is required")
        self.url_templates = tuple(url_templates)
        self._client = client or httpx.AsyncClient(timeout=timeout)
        headers = {"x-api-key": api_key} if api_key else None
        self.chain = EndpointChain(self._client, proxy_url=proxy_url, headers=headers)

    async def close(self) -> None:
        await self._client.aclose()

    async def fetch_markets(self, network_id: int) -> list[Market]:
        urls = [template.format(network_id=network_id) for template in self.url_templates]
        payload = await self.chain.get_json(urls, accept=_has_records)
        markets = parse_markets(payload, network_id)
        logger.debug("Parsed %d market(s) for network %s", len(markets), network_id)
        return markets


def _has_records(payload: Any) -> bool:
    return bool(normalize_payload(payload).records)


def normalize_payload(payload: Any) -> MarketPayload:
    """Resolve either response shape into (sport, record) pairs.

    The markets endpoint answers with a flat list (optionally wrapped as
    ``{"markets": [...]}``) or with a sport -> league -> list grouping.
    """
    if isinstance(payload, list):
        return MarketPayload("flat", _records(None, payload))

    if not isinstance(payload, dict):
        return MarketPayload("flat", ())

    if isinstance(payload.get("markets"), list):
        return MarketPayload("flat", _records(None, payload["markets"]))

    out: list[tuple[str | None, dict[str, Any]]] = []
    for sport, leagues in payload.items():
        if isinstance(leagues, list):
            out.extend(_records(sport, leagues))
            continue
        if not isinstance(leagues, dict):
            continue
        for league_markets in leagues.values():
            if isinstance(league_markets, list):
                out.extend(_records(sport, league_markets))
    return MarketPayload("grouped", tuple(out))


def _records(sport: str | None, items: list[Any]) -> tuple[tuple[str | None, dict[str, Any]], ...]:
    return tuple((sport, item) for item in items if isinstance(item, dict))


def parse_markets(payload: Any, network_id: int) -> list[Market]:
    markets: list[Market] = []
    for sport, record in normalize_payload(payload).records:
        market = parse_market(record, network_id, sport=sport)
        if market is not None:
            markets.append(market)
    return markets


def parse_market(record: dict[str, Any], network_id: int, sport: str | None = None) -> Market | None:
    address = _string_or_none(record.get("address"))
    if not address:
        return None

    try:
        odds = _parse_odds(record)
        maturity = _parse_timestamp(record.get("maturity", record.get("maturityDate")))
        status = _parse_status(record)
        league_id = _int_or_none(record.get("leagueId", record.get("subcategory")))
        liquidity = record.get("liquidity")
        return Market(
            address=address,
            game_id=str(record.get("gameId") or record.get("id") or address),
            sport=str(record.get("sport") or sport or "Unknown"),
            home_team=str(record.get("homeTeam", "")).strip(),
            away_team=str(record.get("awayTeam", "")).strip(),
            maturity=maturity,
            status=status,
            odds=odds,
            network_id=network_id,
            league_id=league_id,
            type_id=int(record.get("typeId") or 0),
            line=float(record.get("line") or 0),
            liquidity=float(liquidity) if liquidity not in (None, "") else None,
        )
    except (KeyError, TypeError, ValueError) as exc:
        logger.debug("Skipping market %s: %s", address, exc)
        return None


def _parse_odds(record: dict[str, Any]) -> tuple[Odds, ...]:
    raw = record.get("odds")
    if isinstance(raw, list) and raw:
        entries = [_odds_entry(item) for item in raw]
    else:
        entries = [
            _odds_entry(record.get("homeOdds")),
            _odds_entry(record.get("awayOdds")),
            _odds_entry(record.get("drawOdds")),
        ]

    entries = entries[:3]
    if len(entries) < 2 or entries[0] is None or entries[1] is None:
        raise ValueError("market is missing home/away odds")

    # A missing draw price means a two-way market.
    if len(entries) > 2 and entries[2] is None:
        entries = entries[:2]
    if any(entry is None for entry in entries):
        raise ValueError("market has an unpriced side")
    return tuple(entries)


def _odds_entry(value: Any) -> Odds | None:
    try:
        if isinstance(value, dict):
            if value.get("decimal"):
                return Odds.from_decimal(float(value["decimal"]))
            if value.get("american"):
                return Odds.from_american(float(value["american"]))
            if value.get("normalizedImplied"):
                return Odds.from_implied(float(value["normalizedImplied"]))
            return None
        if value in (None, "", 0):
            return None
        number = float(value)
    except (TypeError, ValueError):
        return None

    try:
        if 0.0 < number < 1.0:
            return Odds.from_implied(number)
        return Odds.from_decimal(number)
    except ValueError:
        return None


def _parse_timestamp(raw: Any) -> int:
    timestamp = int(float(raw))
    if timestamp > 10**12:
        timestamp //= 1000
    return timestamp


def _parse_status(record: dict[str, Any]) -> MarketStatus:
    raw = record.get("status")
    if isinstance(raw, bool):
        raw = None
    if isinstance(raw, (int, float)):
        return MarketStatus(int(raw))
    if isinstance(raw, str) and raw.strip():
        text = raw.strip().lower()
        if text.isdigit():
            return MarketStatus(int(text))
        if text in _STATUS_NAMES:
            return _STATUS_NAMES[text]
        raise ValueError(f"unknown status {raw!r}")

    code = record.get("statusCode")
    if isinstance(code, str) and code.strip().lower() in _STATUS_NAMES:
        return _STATUS_NAMES[code.strip().lower()]

    if record.get("isCanceled"):
        return MarketStatus.CANCELED
    if record.get("isResolved"):
        return MarketStatus.RESOLVED
    if record.get("isPaused"):
        return MarketStatus.PAUSED
    return MarketStatus.OPEN


def _int_or_none(value: Any) -> int | None:
    # Legacy records carry league names such as "EPL" here.
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def _string_or_none(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
