from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass


@dataclass(frozen=True)
class NetworkContracts:
    network_id: int
    name: str
    settlement_token_address: str
    market_maker_address: str
    rpc_url: str
    explorer_url: str
    settlement_token_symbol: str = "USDC"
    settlement_token_decimals: int = 6

    @property
    def chain_id_hex(self) -> str:
        return hex(self.network_id)


OPTIMISM = NetworkContracts(
    network_id=10,
    name="Optimism",
    settlement_token_address="0x7F5c764cBc14f9669B88837ca1490cCa17c31607",
    market_maker_address="0xad41C77d99E282267C1492cdEFe528D7d5044253",
    rpc_url="https://mainnet.optimism.io",
    explorer_url="https://optimistic.etherscan.io",
)

ARBITRUM = NetworkContracts(
    network_id=42161,
    name="Arbitrum",
    settlement_token_address="0xFF970A61A04b1cA14834A43f5dE4533eBDDB5CC8",
    market_maker_address="0x82872A82E70081D42f5c2610259324Bb463B2bC2",
    rpc_url="https://arb1.arbitrum.io/rpc",
    explorer_url="https://arbiscan.io",
)

BASE = NetworkContracts(
    network_id=8453,
    name="Base",
    settlement_token_address="0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
    market_maker_address="0x80903Aa4d358542652c8D4B33cd942EA1Bf8fd41",
    rpc_url="https://mainnet.base.org",
    explorer_url="https://basescan.org",
)

DEFAULT_NETWORKS: tuple[NetworkContracts, ...] = (OPTIMISM, ARBITRUM, BASE)


class NetworkCatalog:
    """Static lookup of the networks the client can trade on.

    Iteration order is the priority order markets are discovered in.
    """

    def __init__(self, networks: Iterable[NetworkContracts] = DEFAULT_NETWORKS) -> None:
        self._networks: dict[int, NetworkContracts] = {}
        for network in networks:
            if network.network_id in self._networks:
                raise ValueError(f"Duplicate network id {network.network_id}")
            self._networks[network.network_id] = network

    def __iter__(self):
        return iter(self._networks.values())

    def __len__(self) -> int:
        return len(self._networks)

    def __contains__(self, network_id: object) -> bool:
        return network_id in self._networks

    def get(self, network_id: int) -> NetworkContracts | None:
        return self._networks.get(network_id)

    def name_of(self, network_id: int | None) -> str:
        network = self._networks.get(network_id) if network_id is not None else None
        if network is None:
            return f"Chain ID {network_id}"
        return network.name

    def prioritized(self, priority: Sequence[int]) -> NetworkCatalog:
        missing = [network_id for network_id in priority if network_id not in self._networks]
        if missing:
            raise ValueError(f"Unknown network ids in priority list: {missing}")
        return NetworkCatalog(self._networks[network_id] for network_id in priority)

    def transaction_url(self, network_id: int, tx_hash: str | None) -> str | None:
        network = self._networks.get(network_id)
        if not tx_hash or network is None:
            return None
        return f"{network.explorer_url.rstrip('/')}/tx/{tx_hash}"
