"""
Network table, token registry and the native-vs-token classification rule.

Every network belongs to a *family* that decides its native asset. An
identifier that is neither a table entry nor an alias goes through substring
checks: "bnb"/"bsc" selects the BNB family, plus "test" selects its testnet.
Anything else falls back to the default network.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from typing import Dict, Iterable, Mapping, Optional, Tuple

from eth_utils import is_hex_address, to_checksum_address

__all__ = [
    "DEFAULT_NETWORK",
    "NATIVE_DECIMALS",
    "NetworkFamily",
    "NetworkInfo",
    "NetworkTable",
    "TokenRegistry",
    "TransferKind",
    "classify_transfer",
    "network_family",
]

NATIVE_DECIMALS = 18
DEFAULT_NETWORK = "sepolia"


class NetworkFamily(str, enum.Enum):
    ETHEREUM = "ethereum"
    BNB = "bnb"

    @property
    def native_symbol(self) -> str:
        return _NATIVE_SYMBOLS[self]


_NATIVE_SYMBOLS = {
    NetworkFamily.ETHEREUM: "ETH",
    NetworkFamily.BNB: "BNB",
}


class TransferKind(str, enum.Enum):
    NATIVE = "native"
    TOKEN = "erc20"


@dataclass(frozen=True)
class NetworkInfo:
    name: str
    family: NetworkFamily
    chain_id: int
    rpc_url: str
    testnet: bool = False

    @property
    def native_symbol(self) -> str:
        return self.family.native_symbol


_BUILTIN_NETWORKS: Tuple[NetworkInfo, ...] = (
    NetworkInfo(
        name="sepolia",
        family=NetworkFamily.ETHEREUM,
        chain_id=11155111,
        rpc_url="https://ethereum-sepolia-rpc.publicnode.com",
        testnet=True,
    ),
    NetworkInfo(
        name="ethereum",
        family=NetworkFamily.ETHEREUM,
        chain_id=1,
        rpc_url="https://ethereum-rpc.publicnode.com",
    ),
    NetworkInfo(
        name="bnb-testnet",
        family=NetworkFamily.BNB,
        chain_id=97,
        rpc_url="https://data-seed-prebsc-1-s1.binance.org:8545/",
        testnet=True,
    ),
    NetworkInfo(
        name="bnb",
        family=NetworkFamily.BNB,
        chain_id=56,
        rpc_url="https://bsc-dataseed.binance.org/",
    ),
)

_BUILTIN_ALIASES: Dict[str, str] = {
    "eth": "ethereum",
    "mainnet": "ethereum",
    "ethereum-mainnet": "ethereum",
    "eth-sepolia": "sepolia",
    "ethereum-sepolia": "sepolia",
    "bsc": "bnb",
    "bnb-chain": "bnb",
    "bnb-mainnet": "bnb",
    "bsc-testnet": "bnb-testnet",
    "bnb-chain-testnet": "bnb-testnet",
    "bnbtestnet": "bnb-testnet",
}

# (network, symbol) -> ERC-20 contract
_BUILTIN_TOKENS: Dict[Tuple[str, str], str] = {
    ("sepolia", "USDC"): "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238",
    ("ethereum", "USDC"): "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
    ("ethereum", "USDT"): "0xdAC17F958D2ee523a2206206994597C13D831ec7",
    ("bnb-testnet", "USDC"): "0x64544969ed7EBf5f083679233325356EbE738930",
    ("bnb-testnet", "USDT"): "0x337610d27c682E347C9cD60BD4b3b107C9d34dDd",
    ("bnb", "USDC"): "0x8AC76a51cc950d9822D68b83fE1Ad97B32Cd580d",
    ("bnb", "USDT"): "0x55d398326f99059fF775485246999027B3197955",
}


def network_family(identifier: str) -> NetworkFamily:
    lowered = (identifier or "").lower()
    if "bnb" in lowered or "bsc" in lowered:
        return NetworkFamily.BNB
    return NetworkFamily.ETHEREUM


class NetworkTable:
    """
    Maps network identifiers to concrete chains.
    """

    def __init__(
        self,
        networks: Iterable[NetworkInfo] = _BUILTIN_NETWORKS,
        *,
        aliases: Optional[Mapping[str, str]] = None,
        default: str = DEFAULT_NETWORK,
    ) -> None:
        self._networks: Dict[str, NetworkInfo] = {info.name: info for info in networks}
        self._aliases: Dict[str, str] = dict(_BUILTIN_ALIASES if aliases is None else aliases)
        if default not in self._networks:
            raise ValueError(f"Default network '{default}' is not in the network table")
        self._default = default

    @property
    def default(self) -> NetworkInfo:
        return self._networks[self._default]

    def names(self) -> Tuple[str, ...]:
        return tuple(self._networks)

    def with_rpc_overrides(self, overrides: Mapping[str, str]) -> "NetworkTable":
        networks = []
        for info in self._networks.values():
            url = overrides.get(info.name)
            networks.append(replace(info, rpc_url=url) if url else info)
        return NetworkTable(networks, aliases=self._aliases, default=self._default)

    def resolve(self, identifier: Optional[str]) -> NetworkInfo:
        key = (identifier or "").strip().lower()
        if not key:
            return self.default
        if key in self._networks:
            return self._networks[key]
        if key in self._aliases:
            return self._networks[self._aliases[key]]

        if network_family(key) is NetworkFamily.BNB:
            testnet = "test" in key
            for info in self._networks.values():
                if info.family is NetworkFamily.BNB and info.testnet == testnet:
                    return info
        return self.default


def classify_transfer(token: str, network: NetworkInfo) -> TransferKind:
    """
    ``NATIVE`` when ``token`` is the gas asset of ``network``'s family.
    """
    if (token or "").strip().upper() == network.native_symbol:
        return TransferKind.NATIVE
    return TransferKind.TOKEN


class TokenRegistry:
    """
    Static registry of ERC-20 contracts keyed by ``(network, SYMBOL)``.
    """

    def __init__(self, tokens: Optional[Mapping[Tuple[str, str], str]] = None) -> None:
        source = _BUILTIN_TOKENS if tokens is None else tokens
        self._tokens: Dict[Tuple[str, str], str] = {}
        for (network, symbol), address in source.items():
            self.register(network, symbol, address)

    def register(self, network: str, symbol: str, address: str) -> None:
        if not is_hex_address(address):
            raise ValueError(f"{symbol} on {network}: '{address}' is not a valid EVM address")
        self._tokens[(network.lower(), symbol.upper())] = to_checksum_address(address)

    def merged(self, extra: Mapping[Tuple[str, str], str]) -> "TokenRegistry":
        registry = TokenRegistry(self._tokens)
        for (network, symbol), address in extra.items():
            registry.register(network, symbol, address)
        return registry

    def resolve(self, network: NetworkInfo, symbol: str) -> Optional[str]:
        return self._tokens.get((network.name, (symbol or "").strip().upper()))

    def items(self) -> Iterable[Tuple[Tuple[str, str], str]]:
        return self._tokens.items()
