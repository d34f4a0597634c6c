from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import IntEnum

from .errors import InvalidWager
from .odds import (
    american_to_decimal,
    decimal_to_american,
    decimal_to_implied,
    implied_to_decimal,
)


class Side(IntEnum):
    HOME = 0
    AWAY = 1
    DRAW = 2


class MarketStatus(IntEnum):
    OPEN = 0
    PAUSED = 1
    RESOLVED = 2
    CANCELED = 255


@dataclass(frozen=True)
class Odds:
    decimal: float
    american: float
    implied: float

    @classmethod
    def from_decimal(cls, value: float) -> Odds:
        return cls(
            decimal=value,
            american=decimal_to_american(value),
            implied=decimal_to_implied(value),
        )

    @classmethod
    def from_american(cls, value: float) -> Odds:
        return cls.from_decimal(american_to_decimal(value))

    @classmethod
    def from_implied(cls, value: float) -> Odds:
        return cls.from_decimal(implied_to_decimal(value))


@dataclass(frozen=True)
class Market:
    address: str
    game_id: str
    sport: str
    home_team: str
    away_team: str
    maturity: int
    status: MarketStatus
    odds: tuple[Odds, ...]
    network_id: int
    league_id: int | None = None
    type_id: int = 0
    line: float = 0.0
    liquidity: float | None = None

    @property
    def is_open(self) -> bool:
        return self.status == MarketStatus.OPEN

    def odds_for(self, side: Side) -> Odds:
        if side >= len(self.odds):
            raise InvalidWager(
                f"Market {self.address} has no {side.name.lower()} side to back"
            )
        return self.odds[side]


@dataclass(frozen=True)
class MarketCacheEntry:
    fetched_at_millis: int
    network_id: int
    markets: tuple[Market, ...]


@dataclass(frozen=True)
class Quote:
    decimal_payout_multiplier: float
    implied_probability: float
    stake: Decimal
    side: Side

    @property
    def expected_payout(self) -> Decimal:
        return self.stake * Decimal(str(self.decimal_payout_multiplier))

    @property
    def american(self) -> float:
        return decimal_to_american(self.decimal_payout_multiplier)


@dataclass(frozen=True)
class TradeResult:
    success: bool
    message: str
    transaction_hash: str | None = None
    error: str | None = None
