"""ABI encoding for the settlement token and the sports AMM.

Only calldata is produced here; sending it is the wallet's job.
"""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal

from eth_abi import decode
from web3 import Web3

from .errors import InvalidWager

MAX_UINT256 = 2**256 - 1
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

ERC20_ABI = [
    {
        "constant": True,
        "inputs": [{"name": "_owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "balance", "type": "uint256"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [
            {"name": "_owner", "type": "address"},
            {"name": "_spender", "type": "address"},
        ],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "type": "function",
    },
    {
        "constant": False,
        "inputs": [
            {"name": "_spender", "type": "address"},
            {"name": "_value", "type": "uint256"},
        ],
        "name": "approve",
        "outputs": [{"name": "", "type": "bool"}],
        "type": "function",
    },
]

SPORTS_AMM_ABI = [
    {
        "inputs": [
            {"name": "market", "type": "address"},
            {"name": "position", "type": "uint8"},
            {"name": "amount", "type": "uint256"},
            {"name": "expectedPayout", "type": "uint256"},
            {"name": "collateral", "type": "address"},
            {"name": "referrer", "type": "address"},
        ],
        "name": "buyFromAMMWithDifferentCollateralAndReferrer",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]

_w3 = Web3()
_erc20 = _w3.eth.contract(abi=ERC20_ABI)
_sports_amm = _w3.eth.contract(abi=SPORTS_AMM_ABI)


def checksum(address: str) -> str:
    try:
        return Web3.to_checksum_address(address)
    except (TypeError, ValueError) as exc:
        raise InvalidWager(f"Invalid address {address!r}") from exc


def encode_balance_of(owner: str) -> str:
    return _erc20.encode_abi("balanceOf", [checksum(owner)])


def encode_allowance(owner: str, spender: str) -> str:
    return _erc20.encode_abi("allowance", [checksum(owner), checksum(spender)])


def encode_approve(spender: str, amount: int) -> str:
    return _erc20.encode_abi("approve", [checksum(spender), amount])


def encode_buy(
    market: str,
    position: int,
    amount: int,
    expected_payout: int,
    collateral: str,
    referrer: str = ZERO_ADDRESS,
) -> str:
    return _sports_amm.encode_abi(
        "buyFromAMMWithDifferentCollateralAndReferrer",
        [checksum(market), position, amount, expected_payout, checksum(collateral), checksum(referrer)],
    )


def decode_uint256(result: str) -> int:
    raw = bytes.fromhex(result[2:] if result.startswith("0x") else result)
    if len(raw) < 32:
        raise ValueError(f"Call returned {len(raw)} byte(s), expected a uint256")
    (value,) = decode(["uint256"], raw[:32])
    return value


def to_base_units(amount: Decimal, decimals: int) -> int:
    return int((amount * (Decimal(10) ** decimals)).to_integral_value(rounding=ROUND_DOWN))


def from_base_units(value: int, decimals: int) -> Decimal:
    return Decimal(value) / (Decimal(10) ** decimals)


def format_amount(amount: Decimal) -> str:
    return format(amount.normalize(), "f")
