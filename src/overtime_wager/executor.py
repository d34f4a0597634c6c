from __future__ import annotations

import logging
from decimal import Decimal

from .contracts import (
    MAX_UINT256,
    checksum,
    decode_uint256,
    encode_allowance,
    encode_approve,
    encode_balance_of,
    encode_buy,
    format_amount,
    from_base_units,
    to_base_units,
)
from .errors import (
    InsufficientFunds,
    InvalidWager,
    NetworkMismatch,
    QuoteUnavailable,
    TradeInProgress,
    TransactionFailed,
    WagerError,
    WalletNotConnected,
    WalletRequestError,
)
from .networks import NetworkCatalog, NetworkContracts
from .quotes import QuoteService, validate_stake
from .types import Market, Quote, Side, TradeResult
from .wallet import (
    WalletProvider,
    call,
    get_accounts,
    get_chain_id,
    send_transaction,
    wait_for_receipt,
)

logger = logging.getLogger(__name__)

DEFAULT_SLIPPAGE_TOLERANCE = Decimal("0.05")


class TradeExecutor:
    """Places one wager: network check, quote, balance, approval, trade.

    ``place_bet`` never raises and never retries; every outcome is a
    ``TradeResult``. Overlapping calls for the same account are rejected
    while the first one is still running.
    """

    def __init__(
        self,
        catalog: NetworkCatalog,
        quotes: QuoteService,
        slippage_tolerance: Decimal = DEFAULT_SLIPPAGE_TOLERANCE,
        approve_unlimited: bool = False,
        confirmation_timeout: float = 120.0,
        poll_interval: float = 2.0,
    ) -> None:
        if not Decimal(0) <= slippage_tolerance < Decimal(1):
            raise ValueError("slippage_tolerance must be in [0, 1)")
        if confirmation_timeout <= 0:
            raise ValueError("confirmation_timeout must be positive")
        self.catalog = catalog
        self.quotes = quotes
        self.slippage_tolerance = slippage_tolerance
        self.approve_unlimited = approve_unlimited
        self.confirmation_timeout = confirmation_timeout
        self.poll_interval = poll_interval
        self._in_flight: set[str] = set()

    async def place_bet(
        self,
        market: Market,
        side: Side,
        stake: Decimal,
        wallet: WalletProvider,
    ) -> TradeResult:
        claimed: str | None = None
        try:
            account = await self._connected_account(wallet)
            validate_stake(stake)
            key = account.lower()
            if key in self._in_flight:
                raise TradeInProgress(f"A bet from {account} is already being submitted")
            self._in_flight.add(key)
            claimed = key

            tx_hash = await self._execute(market, side, stake, wallet, account)
        except WagerError as exc:
            logger.warning("Bet on %s failed (%s): %s", market.address, exc.code, exc)
            return TradeResult(success=False, message=str(exc), error=exc.code)
        except WalletRequestError as exc:
            logger.warning("Wallet refused bet on %s: %s", market.address, exc)
            return TradeResult(
                success=False,
                message=f"Wallet rejected the request: {exc}",
                error=TransactionFailed.code,
            )
        except Exception as exc:
            logger.exception("Unexpected failure placing bet on %s", market.address)
            return TradeResult(success=False, message=f"Error: {exc}", error=TransactionFailed.code)
        finally:
            if claimed is not None:
                self._in_flight.discard(claimed)

        return TradeResult(success=True, message="Bet placed successfully!", transaction_hash=tx_hash)

    async def _connected_account(self, wallet: WalletProvider) -> str:
        try:
            accounts = await get_accounts(wallet)
        except Exception as exc:
            raise WalletNotConnected(f"Wallet not connected: {exc}") from exc
        if not accounts:
            raise WalletNotConnected("Wallet not connected")
        return accounts[0]

    async def _execute(
        self,
        market: Market,
        side: Side,
        stake: Decimal,
        wallet: WalletProvider,
        account: str,
    ) -> str:
        network = self.catalog.get(market.network_id)
        if network is None:
            raise InvalidWager(f"Unsupported network: {self.catalog.name_of(market.network_id)}")
        market_address = checksum(market.address)

        chain_id = await get_chain_id(wallet)
        if chain_id != market.network_id:
            raise NetworkMismatch(
                required=self.catalog.name_of(market.network_id),
                current=self.catalog.name_of(chain_id),
            )

        quote = await self._quote(market, side, stake)

        decimals = network.settlement_token_decimals
        stake_units = to_base_units(stake, decimals)
        if stake_units <= 0:
            raise InvalidWager(f"Stake {stake} is below the smallest {network.settlement_token_symbol} unit")

        await self._check_balance(wallet, account, network, stake, stake_units)
        await self._ensure_allowance(wallet, account, network, stake_units)

        min_payout = quote.expected_payout * (Decimal(1) - self.slippage_tolerance)
        min_payout_units = to_base_units(min_payout, decimals)
        data = encode_buy(
            market_address,
            int(side),
            stake_units,
            min_payout_units,
            network.settlement_token_address,
        )

        logger.info(
            "Placing bet of %s %s on %s for market %s (min payout %s)",
            format_amount(stake),
            network.settlement_token_symbol,
            side.name.lower(),
            market_address,
            format_amount(from_base_units(min_payout_units, decimals)),
        )
        tx_hash = await send_transaction(wallet, account, network.market_maker_address, data)
        await wait_for_receipt(wallet, tx_hash, self.confirmation_timeout, self.poll_interval)
        logger.info("Bet confirmed tx=%s", tx_hash)
        return tx_hash

    async def _quote(self, market: Market, side: Side, stake: Decimal) -> Quote:
        try:
            return await self.quotes.get_quote(market, side, stake)
        except (QuoteUnavailable, InvalidWager):
            raise
        except Exception as exc:
            raise QuoteUnavailable(f"Quote unavailable: {exc}") from exc

    async def _check_balance(
        self,
        wallet: WalletProvider,
        account: str,
        network: NetworkContracts,
        stake: Decimal,
        stake_units: int,
    ) -> None:
        raw = await call(
            wallet, account, network.settlement_token_address, encode_balance_of(account)
        )
        balance = decode_uint256(raw)
        if balance < stake_units:
            raise InsufficientFunds(
                held=format_amount(from_base_units(balance, network.settlement_token_decimals)),
                required=format_amount(stake),
                symbol=network.settlement_token_symbol,
            )

    async def _ensure_allowance(
        self,
        wallet: WalletProvider,
        account: str,
        network: NetworkContracts,
        stake_units: int,
    ) -> None:
        token = network.settlement_token_address
        spender = network.market_maker_address
        allowance = decode_uint256(await call(wallet, account, token, encode_allowance(account, spender)))
        if allowance >= stake_units:
            logger.debug("Existing allowance %d covers stake %d", allowance, stake_units)
            return

        amount = MAX_UINT256 if self.approve_unlimited else stake_units
        logger.info("Approving %s spending on %s", network.settlement_token_symbol, network.name)
        tx_hash = await send_transaction(wallet, account, token, encode_approve(spender, amount))
        await wait_for_receipt(wallet, tx_hash, self.confirmation_timeout, self.poll_interval)
        logger.info("Approval confirmed tx=%s", tx_hash)
