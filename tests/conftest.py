"""Pytest configuration and shared fakes."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional

import pytest
from eth_utils import to_checksum_address
from hexbytes import HexBytes

from x402_paylinks.core.chain import ChainReaders
from x402_paylinks.core.errors import ChainReaderError
from x402_paylinks.core.networks import NetworkInfo, NetworkTable, TokenRegistry
from x402_paylinks.core.transfers import TRANSFER_TOPIC, TransferExtractor
from x402_paylinks.core.verification import VerificationEngine

RECEIVER = to_checksum_address("0x" + "ab" * 20)
PAYER = to_checksum_address("0x" + "cd" * 20)
OTHER = to_checksum_address("0x" + "ef" * 20)
SEPOLIA_USDC = "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238"

TX_A = "0x" + "a1" * 32
TX_B = "0x" + "b2" * 32


def topic_for(address: str) -> HexBytes:
    return HexBytes(b"\x00" * 12 + HexBytes(address))


def transfer_log(contract: str, sender: str, recipient: str, value: int) -> Dict[str, Any]:
    return {
        "address": contract,
        "topics": [TRANSFER_TOPIC, topic_for(sender), topic_for(recipient)],
        "data": HexBytes(value.to_bytes(32, "big")),
    }


class MutableClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now: Optional[datetime] = None) -> None:
        self.current = now or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current = self.current + timedelta(**kwargs)


class FakeChainReader:
    """In-memory chain reader; every call is recorded in ``calls``."""

    def __init__(self, network: NetworkInfo) -> None:
        self.network = network
        self.transactions: Dict[str, Mapping[str, Any]] = {}
        self.receipts: Dict[str, Mapping[str, Any]] = {}
        self.decimals: Dict[str, int] = {}
        self.failure: Optional[BaseException] = None
        self.delay: float = 0.0
        self.calls: List[str] = []
        self.closed = False

    def add_native(self, tx_hash: str, *, to: Optional[str], value: int, status: int = 1, block: int = 100) -> None:
        self.transactions[tx_hash] = {"hash": tx_hash, "to": to, "value": value, "from": PAYER}
        self.receipts[tx_hash] = {"status": status, "blockNumber": block, "logs": []}

    def add_token_transfer(
        self,
        tx_hash: str,
        *,
        contract: str,
        to: str,
        value: int,
        decimals: int = 6,
        status: int = 1,
        block: int = 200,
        extra_logs: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        logs = list(extra_logs or [])
        logs.append(transfer_log(contract, PAYER, to, value))
        self.transactions[tx_hash] = {"hash": tx_hash, "to": contract, "value": 0, "from": PAYER}
        self.receipts[tx_hash] = {"status": status, "blockNumber": block, "logs": logs}
        self.decimals[contract.lower()] = decimals

    async def _enter(self, call: str) -> None:
        self.calls.append(call)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.failure is not None:
            raise self.failure

    async def get_transaction(self, tx_hash: str) -> Optional[Mapping[str, Any]]:
        await self._enter("get_transaction")
        return self.transactions.get(tx_hash)

    async def get_receipt(self, tx_hash: str) -> Optional[Mapping[str, Any]]:
        await self._enter("get_receipt")
        return self.receipts.get(tx_hash)

    async def get_token_decimals(self, contract_address: str) -> int:
        await self._enter("get_token_decimals")
        return self.decimals.get(contract_address.lower(), 18)

    def fail(self, message: str = "connection refused") -> None:
        self.failure = ChainReaderError(message, network=self.network.name)

    async def aclose(self) -> None:
        self.closed = True


class FakeChainReaders(ChainReaders):
    def _build(self, info: NetworkInfo) -> FakeChainReader:
        return FakeChainReader(info)


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock()


@pytest.fixture
def readers() -> FakeChainReaders:
    return FakeChainReaders(NetworkTable())


@pytest.fixture
def engine(readers: FakeChainReaders) -> VerificationEngine:
    return VerificationEngine(readers, TransferExtractor(TokenRegistry()))
