"""
Read-only access to EVM JSON-RPC endpoints.

Readers never retry. "Not found" is a normal ``None`` result; every other
failure is raised as :class:`ChainReaderError` so callers can tell an RPC outage
apart from a bad transaction.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Mapping, Optional, Protocol

import aiohttp
from eth_utils import to_checksum_address
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import TransactionNotFound, Web3Exception

from .errors import ChainReaderError
from .networks import NetworkInfo, NetworkTable

__all__ = [
    "ERC20_ABI",
    "ChainReader",
    "ChainReaders",
    "Web3ChainReader",
]

logger = logging.getLogger(__name__)

ERC20_ABI = [
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "from", "type": "address"},
            {"indexed": True, "name": "to", "type": "address"},
            {"indexed": False, "name": "value", "type": "uint256"},
        ],
        "name": "Transfer",
        "type": "event",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "stateMutability": "view",
        "type": "function",
    },
]

_TRANSPORT_ERRORS = (
    Web3Exception,
    aiohttp.ClientError,
    asyncio.TimeoutError,
    OSError,
    ValueError,
)


class ChainReader(Protocol):
    network: NetworkInfo

    async def get_transaction(self, tx_hash: str) -> Optional[Mapping[str, Any]]:
        ...

    async def get_receipt(self, tx_hash: str) -> Optional[Mapping[str, Any]]:
        ...

    async def get_token_decimals(self, contract_address: str) -> int:
        ...


class Web3ChainReader:
    def __init__(
        self,
        network: NetworkInfo,
        *,
        timeout_seconds: float = 15,
        web3: Optional[AsyncWeb3] = None,
    ) -> None:
        self.network = network
        self._w3 = web3 or AsyncWeb3(
            AsyncHTTPProvider(
                network.rpc_url,
                request_kwargs={"timeout": aiohttp.ClientTimeout(total=timeout_seconds)},
            )
        )
        self._decimals: Dict[str, int] = {}

    async def get_transaction(self, tx_hash: str) -> Optional[Mapping[str, Any]]:
        try:
            return await self._w3.eth.get_transaction(tx_hash)
        except TransactionNotFound:
            return None
        except _TRANSPORT_ERRORS as exc:
            raise self._wrap("eth_getTransactionByHash", exc) from exc

    async def get_receipt(self, tx_hash: str) -> Optional[Mapping[str, Any]]:
        try:
            return await self._w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None
        except _TRANSPORT_ERRORS as exc:
            raise self._wrap("eth_getTransactionReceipt", exc) from exc

    async def get_token_decimals(self, contract_address: str) -> int:
        address = to_checksum_address(contract_address)
        cached = self._decimals.get(address)
        if cached is not None:
            return cached

        contract = self._w3.eth.contract(address=address, abi=ERC20_ABI)
        try:
            decimals = int(await contract.functions.decimals().call())
        except _TRANSPORT_ERRORS as exc:
            raise self._wrap("decimals()", exc) from exc
        self._decimals[address] = decimals
        return decimals

    async def aclose(self) -> None:
        await self._w3.provider.disconnect()

    def _wrap(self, method: str, exc: BaseException) -> ChainReaderError:
        logger.warning(
            "RPC call %s failed on network=%s endpoint=%s: %s",
            method,
            self.network.name,
            self.network.rpc_url,
            exc,
        )
        return ChainReaderError(
            f"{method} failed on {self.network.name}: {exc or type(exc).__name__}",
            network=self.network.name,
        )


class ChainReaders:
    """
    Lazily builds and caches one reader per concrete network.
    """

    def __init__(self, networks: NetworkTable, *, timeout_seconds: float = 15) -> None:
        self.networks = networks
        self._timeout_seconds = timeout_seconds
        self._readers: Dict[str, ChainReader] = {}

    def reader_for(self, network: Optional[str]) -> ChainReader:
        info = self.networks.resolve(network)
        reader = self._readers.get(info.name)
        if reader is None:
            reader = self._build(info)
            self._readers[info.name] = reader
            logger.debug("Connected chain reader network=%s rpc=%s", info.name, info.rpc_url)
        return reader

    def _build(self, info: NetworkInfo) -> ChainReader:
        return Web3ChainReader(info, timeout_seconds=self._timeout_seconds)

    async def aclose(self) -> None:
        readers, self._readers = self._readers, {}
        for reader in readers.values():
            close = getattr(reader, "aclose", None)
            if close is not None:
                await close()
