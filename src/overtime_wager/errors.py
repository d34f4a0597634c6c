from __future__ import annotations

from typing import Any


class WagerError(Exception):
    code = "WagerError"


class NoMarketsAvailable(WagerError):
    code = "NoMarketsAvailable"


class WalletNotConnected(WagerError):
    code = "WalletNotConnected"


class NetworkMismatch(WagerError):
    code = "NetworkMismatch"

    def __init__(self, required: str, current: str) -> None:
        super().__init__(
            f"Wallet is connected to {current}, but the market is on {required}. "
            "Please switch networks."
        )
        self.required = required
        self.current = current


class QuoteUnavailable(WagerError):
    code = "QuoteUnavailable"


class InsufficientFunds(WagerError):
    code = "InsufficientFunds"

    def __init__(self, held: str, required: str, symbol: str) -> None:
        super().__init__(
            f"Insufficient {symbol} balance: have {held} {symbol}, need {required} {symbol}"
        )
        self.held = held
        self.required = required


class TransactionFailed(WagerError):
    code = "TransactionFailed"


class InvalidWager(WagerError):
    code = "InvalidWager"


class TradeInProgress(WagerError):
    code = "TradeInProgress"


class WalletRequestError(Exception):
    """Error object returned by a wallet for a JSON-RPC request."""

    USER_REJECTED = 4001
    UNRECOGNIZED_CHAIN = 4902

    def __init__(self, code: int | None, message: str, data: Any = None) -> None:
        super().__init__(f"Wallet error {code}: {message}" if code is not None else message)
        self.code = code
        self.data = data
