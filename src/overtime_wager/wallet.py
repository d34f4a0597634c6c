from __future__ import annotations

import asyncio
import itertools
import json
import logging
from typing import Any, Protocol

import httpx
import websockets
from websockets.exceptions import ConnectionClosed

from .errors import TransactionFailed, WalletRequestError
from .networks import NetworkContracts

logger = logging.getLogger(__name__)


class WalletProvider(Protocol):
    """Injected-wallet style request capability (EIP-1193 ``request``)."""

    async def request(self, method: str, params: list[Any] | None = None) -> Any: ...


def _unwrap(reply: Any) -> Any:
    if not isinstance(reply, dict):
        raise WalletRequestError(None, f"Malformed JSON-RPC reply: {reply!r}")
    error = reply.get("error")
    if error:
        if isinstance(error, dict):
            raise WalletRequestError(error.get("code"), str(error.get("message", "")), error.get("data"))
        raise WalletRequestError(None, str(error))
    return reply.get("result")


class HttpWalletProvider:
    """JSON-RPC wallet reached over HTTP, e.g. a desktop wallet's local endpoint."""

    def __init__(self, url: str, timeout: float = 15.0, client: httpx.AsyncClient | None = None) -> None:
        self.url = url
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._ids = itertools.count(1)

    async def close(self) -> None:
        await self._client.aclose()

    async def request(self, method: str, params: list[Any] | None = None) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params or []}
        resp = await self._client.post(self.url, json=payload)
        resp.raise_for_status()
        return _unwrap(resp.json())


class WebSocketWalletProvider:
    """JSON-RPC wallet reached over a websocket.

    Requests are serialised on one connection; replies that do not carry the
    pending request id (subscription pushes and the like) are skipped.
    """

    def __init__(self, url: str, timeout: float = 15.0) -> None:
        self.url = url
        self.timeout = timeout
        self._ws: Any = None
        self._lock = asyncio.Lock()
        self._ids = itertools.count(1)

    async def close(self) -> None:
        if self._ws is not None:
            await self._ws.close()
            self._ws = None

    async def request(self, method: str, params: list[Any] | None = None) -> Any:
        async with self._lock:
            try:
                return await self._exchange(method, params)
            except ConnectionClosed as exc:
                # The request never got a reply, so it is sent again on a fresh socket.
                logger.warning("Wallet connection closed (%s). Reconnecting", exc)
                self._ws = None
            try:
                return await self._exchange(method, params)
            except ConnectionClosed:
                self._ws = None
                raise

    async def _exchange(self, method: str, params: list[Any] | None) -> Any:
        if self._ws is None:
            self._ws = await websockets.connect(self.url, ping_interval=20, ping_timeout=20)
            logger.info("Connected to wallet %s", self.url)

        request_id = next(self._ids)
        await self._ws.send(
            json.dumps({"jsonrpc": "2.0", "id": request_id, "method": method, "params": params or []})
        )
        while True:
            raw = await asyncio.wait_for(self._ws.recv(), self.timeout)
            try:
                reply = json.loads(raw)
            except json.JSONDecodeError:
                continue
            if isinstance(reply, dict) and reply.get("id") == request_id:
                return _unwrap(reply)


def wallet_from_url(url: str, timeout: float = 15.0) -> HttpWalletProvider | WebSocketWalletProvider:
    scheme = url.split("://", 1)[0].lower()
    if scheme in ("ws", "wss"):
        return WebSocketWalletProvider(url, timeout=timeout)
    if scheme in ("http", "https"):
        return HttpWalletProvider(url, timeout=timeout)
    raise ValueError(f"Unsupported wallet URL scheme: {url}")


def _to_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    text = str(value).strip()
    return int(text, 16) if text.lower().startswith("0x") else int(text)


async def get_accounts(wallet: WalletProvider) -> list[str]:
    result = await wallet.request("eth_accounts")
    if not isinstance(result, list):
        return []
    return [str(account) for account in result if account]


async def get_chain_id(wallet: WalletProvider) -> int:
    return _to_int(await wallet.request("eth_chainId"))


async def switch_network(wallet: WalletProvider, network: NetworkContracts) -> bool:
    """Ask the wallet to move to ``network``, adding it first if unknown.

    Returns whether the wallet reports the requested chain afterwards.
    """
    if await get_chain_id(wallet) == network.network_id:
        return True

    try:
        await wallet.request("wallet_switchEthereumChain", [{"chainId": network.chain_id_hex}])
    except WalletRequestError as exc:
        if exc.code != WalletRequestError.UNRECOGNIZED_CHAIN:
            raise
        logger.info("Wallet does not know %s, adding it", network.name)
        await wallet.request(
            "wallet_addEthereumChain",
            [
                {
                    "chainId": network.chain_id_hex,
                    "chainName": network.name,
                    "nativeCurrency": {"name": "ETH", "symbol": "ETH", "decimals": 18},
                    "rpcUrls": [network.rpc_url],
                    "blockExplorerUrls": [network.explorer_url],
                }
            ],
        )

    return await get_chain_id(wallet) == network.network_id


async def call(wallet: WalletProvider, sender: str, to: str, data: str) -> str:
    result = await wallet.request("eth_call", [{"from": sender, "to": to, "data": data}, "latest"])
    return str(result or "0x")


async def send_transaction(wallet: WalletProvider, sender: str, to: str, data: str, value: int = 0) -> str:
    tx_hash = await wallet.request(
        "eth_sendTransaction",
        [{"from": sender, "to": to, "data": data, "value": hex(value)}],
    )
    if not tx_hash:
        raise TransactionFailed("Wallet did not return a transaction hash")
    return str(tx_hash)


async def wait_for_receipt(
    wallet: WalletProvider,
    tx_hash: str,
    timeout: float,
    poll_interval: float,
) -> dict[str, Any]:
    async def poll() -> dict[str, Any]:
        while True:
            receipt = await wallet.request("eth_getTransactionReceipt", [tx_hash])
            if isinstance(receipt, dict):
                return receipt
            await asyncio.sleep(poll_interval)

    try:
        receipt = await asyncio.wait_for(poll(), timeout)
    except asyncio.TimeoutError as exc:
        raise TransactionFailed(f"Transaction {tx_hash} not confirmed within {timeout:g}s") from exc

    status = receipt.get("status")
    if status is not None and _to_int(status) != 1:
        raise TransactionFailed(f"Transaction {tx_hash} reverted")
    return receipt
