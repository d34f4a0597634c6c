from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from dotenv import load_dotenv

from .market_data import DEFAULT_MARKETS_URLS
from .quotes import V2_QUOTE_URL

DEFAULT_WALLET_RPC_URL = "http://127.0.0.1:1248"


@dataclass(frozen=True)
class Settings:
    markets_urls: tuple[str, ...] = DEFAULT_MARKETS_URLS
    quote_url: str = V2_QUOTE_URL
    proxy_url: str | None = None
    api_key: str | None = None
    network_priority: tuple[int, ...] = (10, 42161, 8453)
    cache_ttl_seconds: int = 900
    slippage_tolerance: Decimal = Decimal("0.05")
    approve_unlimited: bool = False
    confirmation_timeout_seconds: float = 120.0
    receipt_poll_interval_seconds: float = 2.0
    http_timeout_seconds: float = 15.0
    wallet_rpc_url: str = DEFAULT_WALLET_RPC_URL
    log_level: str = "INFO"


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _optional_str(name: str) -> str | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    return raw.strip()


def _optional_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _optional_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


def _optional_decimal(name: str, default: Decimal) -> Decimal:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return Decimal(raw.strip())
    except InvalidOperation as exc:
        raise ValueError(f"{name} must be a decimal number") from exc


def _optional_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    text = raw.strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def _optional_list(name: str) -> list[str] | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    return [part.strip() for part in raw.split(",") if part.strip()]


def load_settings() -> Settings:
    load_dotenv()
    defaults = Settings()

    markets_urls = _optional_list("OVERTIME_MARKETS_URLS")
    priority = _optional_list("NETWORK_PRIORITY")

    settings = Settings(
        markets_urls=tuple(markets_urls) if markets_urls else defaults.markets_urls,
        quote_url=_optional_str("OVERTIME_QUOTE_URL") or defaults.quote_url,
        proxy_url=_optional_str("OVERTIME_PROXY_URL"),
        api_key=_optional_str("OVERTIME_API_KEY"),
        network_priority=tuple(int(p) for p in priority) if priority else defaults.network_priority,
        cache_ttl_seconds=_optional_int("MARKET_CACHE_TTL_SECONDS", defaults.cache_ttl_seconds),
        slippage_tolerance=_optional_decimal("SLIPPAGE_TOLERANCE", defaults.slippage_tolerance),
        approve_unlimited=_optional_bool("APPROVE_UNLIMITED", defaults.approve_unlimited),
        confirmation_timeout_seconds=_optional_float(
            "CONFIRMATION_TIMEOUT_SECONDS", defaults.confirmation_timeout_seconds
        ),
        receipt_poll_interval_seconds=_optional_float(
            "RECEIPT_POLL_INTERVAL_SECONDS", defaults.receipt_poll_interval_seconds
        ),
        http_timeout_seconds=_optional_float("HTTP_TIMEOUT_SECONDS", defaults.http_timeout_seconds),
        wallet_rpc_url=_optional_str("WALLET_RPC_URL") or defaults.wallet_rpc_url,
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
    )

    if settings.cache_ttl_seconds <= 0:
        raise ValueError("MARKET_CACHE_TTL_SECONDS must be positive")
    if not Decimal(0) <= settings.slippage_tolerance < Decimal(1):
        raise ValueError("SLIPPAGE_TOLERANCE must be in [0, 1)")
    if settings.confirmation_timeout_seconds <= 0:
        raise ValueError("CONFIRMATION_TIMEOUT_SECONDS must be positive")
    return settings
