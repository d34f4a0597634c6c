from __future__ import annotations

import math


def decimal_to_american(decimal_odds: float) -> float:
    if not math.isfinite(decimal_odds) or decimal_odds <= 1.0:
        raise ValueError(f"Decimal odds must be greater than 1.0, got {decimal_odds!r}")
    if decimal_odds >= 2.0:
        return (decimal_odds - 1.0) * 100.0
    return -100.0 / (decimal_odds - 1.0)


def american_to_decimal(american_odds: float) -> float:
    if not math.isfinite(american_odds) or abs(american_odds) < 100.0:
        raise ValueError(f"American odds must be <= -100 or >= +100, got {american_odds!r}")
    if american_odds > 0:
        return 1.0 + american_odds / 100.0
    return 1.0 + 100.0 / abs(american_odds)


def decimal_to_implied(decimal_odds: float) -> float:
    if not math.isfinite(decimal_odds) or decimal_odds <= 1.0:
        raise ValueError(f"Decimal odds must be greater than 1.0, got {decimal_odds!r}")
    return 1.0 / decimal_odds


def implied_to_decimal(implied: float) -> float:
    if not math.isfinite(implied) or not 0.0 < implied < 1.0:
        raise ValueError(f"Implied probability must be in (0, 1), got {implied!r}")
    return 1.0 / implied


def format_american(american_odds: float) -> str:
    rounded = round(american_odds)
    if rounded > 0:
        return f"+{rounded}"
    return str(rounded)
