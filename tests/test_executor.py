import asyncio
from decimal import Decimal

from eth_abi import decode

from overtime_wager.errors import QuoteUnavailable, WalletRequestError
from overtime_wager.executor import TradeExecutor
from overtime_wager.networks import OPTIMISM, NetworkCatalog
from overtime_wager.types import Market, MarketStatus, Odds, Quote, Side

ACCOUNT = "0xabababababababababababababababababababab"
MARKET_ADDRESS = "0x1111111111111111111111111111111111111111"
TOKEN = OPTIMISM.settlement_token_address.lower()
AMM = OPTIMISM.market_maker_address.lower()

BALANCE_OF = "0x70a08231"
ALLOWANCE = "0xdd62ed3e"
APPROVE = "0x095ea7b3"


class DummyWallet:
    def __init__(
        self,
        accounts: list[str] | None = None,
        chain_id: int = 10,
        balance: int = 100_000_000,
        allowance: int = 0,
        receipt_status: str = "0x1",
        mined: bool = True,
        reject_sends: bool = False,
    ) -> None:
        self.accounts = [ACCOUNT] if accounts is None else accounts
        self.chain_id = chain_id
        self.balance = balance
        self.allowance = allowance
        self.receipt_status = receipt_status
        self.mined = mined
        self.reject_sends = reject_sends
        self.calls: list[tuple[str, list]] = []
        self.sent: list[dict] = []

    async def request(self, method: str, params: list | None = None):
        params = params or []
        self.calls.append((method, params))
        if method == "eth_accounts":
            return self.accounts
        if method == "eth_chainId":
            return hex(self.chain_id)
        if method == "eth_call":
            selector = params[0]["data"][:10]
            value = self.balance if selector == BALANCE_OF else self.allowance
            return "0x" + format(value, "064x")
        if method == "eth_sendTransaction":
            if self.reject_sends:
                raise WalletRequestError(4001, "User rejected the request.")
            self.sent.append(params[0])
            return "0x" + format(len(self.sent), "064x")
        if method == "eth_getTransactionReceipt":
            if not self.mined:
                return None
            return {"transactionHash": params[0], "status": self.receipt_status}
        raise AssertionError(f"unexpected method {method}")

    def contract_calls(self) -> list[str]:
        targets = []
        for method, params in self.calls:
            if method in ("eth_call", "eth_sendTransaction"):
                targets.append(params[0]["to"].lower())
        return targets


class DummyQuotes:
    def __init__(self, multiplier: float = 2.0, error: Exception | None = None) -> None:
        self.multiplier = multiplier
        self.error = error
        self.calls = 0

    async def get_quote(self, market: Market, side: Side, stake: Decimal) -> Quote:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return Quote(
            decimal_payout_multiplier=self.multiplier,
            implied_probability=1 / self.multiplier,
            stake=stake,
            side=side,
        )


class GatedQuotes(DummyQuotes):
    def __init__(self, gate: asyncio.Event) -> None:
        super().__init__()
        self.gate = gate

    async def get_quote(self, market: Market, side: Side, stake: Decimal) -> Quote:
        await self.gate.wait()
        return await super().get_quote(market, side, stake)


def _market(network_id: int = 10) -> Market:
    return Market(
        address=MARKET_ADDRESS,
        game_id="0xgame",
        sport="Soccer",
        home_team="Arsenal",
        away_team="Chelsea",
        maturity=1730000000,
        status=MarketStatus.OPEN,
        odds=(Odds.from_decimal(2.0), Odds.from_decimal(2.0)),
        network_id=network_id,
    )


def _executor(quotes: DummyQuotes | None = None, **kwargs) -> TradeExecutor:
    kwargs.setdefault("confirmation_timeout", 1.0)
    kwargs.setdefault("poll_interval", 0.01)
    return TradeExecutor(NetworkCatalog(), quotes or DummyQuotes(), **kwargs)


def test_successful_bet_skips_approval_when_allowance_suffices() -> None:
    wallet = DummyWallet(allowance=10**30)
    result = asyncio.run(_executor().place_bet(_market(), Side.HOME, Decimal("10"), wallet))

    assert result.success is True
    assert result.transaction_hash == "0x" + format(1, "064x")
    assert [tx["to"].lower() for tx in wallet.sent] == [AMM]


def test_bet_submits_min_payout_with_slippage() -> None:
    wallet = DummyWallet(allowance=10**30)
    result = asyncio.run(_executor().place_bet(_market(), Side.AWAY, Decimal("10"), wallet))
    assert result.success is True

    data = bytes.fromhex(wallet.sent[0]["data"][10:])
    market, position, amount, min_payout, collateral, referrer = decode(
        ["address", "uint8", "uint256", "uint256", "address", "address"], data
    )
    assert market.lower() == MARKET_ADDRESS
    assert position == 1
    assert amount == 10_000_000
    # 10 staked at 2.0 pays 20; 5% slippage leaves 19.
    assert min_payout == 19_000_000
    assert collateral.lower() == TOKEN
    assert int(referrer, 16) == 0


def test_approval_sent_and_mined_before_trade() -> None:
    wallet = DummyWallet(allowance=0)
    result = asyncio.run(_executor().place_bet(_market(), Side.HOME, Decimal("10"), wallet))

    assert result.success is True
    assert [tx["to"].lower() for tx in wallet.sent] == [TOKEN, AMM]
    assert wallet.sent[0]["data"].startswith(APPROVE)
    _, approved = decode(["address", "uint256"], bytes.fromhex(wallet.sent[0]["data"][10:]))
    assert approved == 10_000_000

    methods = [method for method, _ in wallet.calls]
    assert methods[-4:] == [
        "eth_sendTransaction",
        "eth_getTransactionReceipt",
        "eth_sendTransaction",
        "eth_getTransactionReceipt",
    ]


def test_unlimited_approval_when_configured() -> None:
    wallet = DummyWallet(allowance=0)
    asyncio.run(_executor(approve_unlimited=True).place_bet(_market(), Side.HOME, Decimal("10"), wallet))
    _, approved = decode(["address", "uint256"], bytes.fromhex(wallet.sent[0]["data"][10:]))
    assert approved == 2**256 - 1


def test_wallet_not_connected() -> None:
    wallet = DummyWallet(accounts=[])
    result = asyncio.run(_executor().place_bet(_market(), Side.HOME, Decimal("10"), wallet))
    assert result.success is False
    assert result.error == "WalletNotConnected"


def test_network_mismatch_touches_no_contracts() -> None:
    wallet = DummyWallet(chain_id=42161)
    quotes = DummyQuotes()
    result = asyncio.run(_executor(quotes).place_bet(_market(), Side.HOME, Decimal("10"), wallet))

    assert result.success is False
    assert result.error == "NetworkMismatch"
    assert "Arbitrum" in result.message
    assert "Optimism" in result.message
    assert wallet.contract_calls() == []
    assert quotes.calls == 0


def test_insufficient_funds_reports_amounts_and_skips_market_maker() -> None:
    wallet = DummyWallet(balance=5_000_000)
    quotes = DummyQuotes()
    result = asyncio.run(_executor(quotes).place_bet(_market(), Side.HOME, Decimal("10"), wallet))

    assert result.success is False
    assert result.error == "InsufficientFunds"
    assert "have 5 USDC" in result.message
    assert "need 10 USDC" in result.message
    assert AMM not in wallet.contract_calls()
    assert wallet.sent == []


def test_quote_failure_aborts_before_any_contract_call() -> None:
    wallet = DummyWallet()
    quotes = DummyQuotes(error=QuoteUnavailable("endpoint down"))
    result = asyncio.run(_executor(quotes).place_bet(_market(), Side.HOME, Decimal("10"), wallet))

    assert result.success is False
    assert result.error == "QuoteUnavailable"
    assert wallet.contract_calls() == []


def test_unexpected_quote_error_is_reported_as_quote_unavailable() -> None:
    quotes = DummyQuotes(error=RuntimeError("boom"))
    result = asyncio.run(_executor(quotes).place_bet(_market(), Side.HOME, Decimal("10"), DummyWallet()))
    assert result.error == "QuoteUnavailable"


def test_rejected_signature_is_a_failed_transaction() -> None:
    wallet = DummyWallet(allowance=10**30, reject_sends=True)
    result = asyncio.run(_executor().place_bet(_market(), Side.HOME, Decimal("10"), wallet))
    assert result.success is False
    assert result.error == "TransactionFailed"
    assert result.transaction_hash is None


def test_reverted_trade_is_a_failed_transaction() -> None:
    wallet = DummyWallet(allowance=10**30, receipt_status="0x0")
    result = asyncio.run(_executor().place_bet(_market(), Side.HOME, Decimal("10"), wallet))
    assert result.success is False
    assert result.error == "TransactionFailed"
    assert "reverted" in result.message


def test_confirmation_wait_times_out() -> None:
    wallet = DummyWallet(allowance=10**30, mined=False)
    executor = _executor(confirmation_timeout=0.05, poll_interval=0.01)
    result = asyncio.run(executor.place_bet(_market(), Side.HOME, Decimal("10"), wallet))
    assert result.success is False
    assert result.error == "TransactionFailed"
    assert "not confirmed" in result.message


def test_invalid_stake_is_rejected_after_the_account_lookup() -> None:
    wallet = DummyWallet()
    result = asyncio.run(_executor().place_bet(_market(), Side.HOME, Decimal("-1"), wallet))
    assert result.error == "InvalidWager"
    assert wallet.calls == [("eth_accounts", [])]


def test_disconnected_wallet_is_reported_before_a_bad_stake() -> None:
    wallet = DummyWallet(accounts=[])
    result = asyncio.run(_executor().place_bet(_market(), Side.HOME, Decimal("-1"), wallet))
    assert result.error == "WalletNotConnected"


def test_overlapping_bets_for_same_account_are_rejected() -> None:
    async def scenario():
        gate = asyncio.Event()
        executor = _executor(GatedQuotes(gate))
        wallet = DummyWallet(allowance=10**30)

        first = asyncio.create_task(executor.place_bet(_market(), Side.HOME, Decimal("10"), wallet))
        await asyncio.sleep(0)
        second = await executor.place_bet(_market(), Side.HOME, Decimal("10"), wallet)
        gate.set()
        return await first, second, wallet

    first, second, wallet = asyncio.run(scenario())

    assert first.success is True
    assert second.success is False
    assert second.error == "TradeInProgress"
    assert len(wallet.sent) == 1


def test_account_is_released_after_a_failed_bet() -> None:
    executor = _executor()
    failing = DummyWallet(balance=0)
    asyncio.run(executor.place_bet(_market(), Side.HOME, Decimal("10"), failing))

    result = asyncio.run(executor.place_bet(_market(), Side.HOME, Decimal("10"), DummyWallet(allowance=10**30)))
    assert result.success is True
