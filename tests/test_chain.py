import asyncio
from typing import Any, Callable, Dict, List, Tuple

import aiohttp
import pytest
from web3 import AsyncWeb3
from web3.providers.async_base import AsyncJSONBaseProvider

from x402_paylinks.core.chain import ChainReaders, Web3ChainReader
from x402_paylinks.core.errors import ChainReaderError
from x402_paylinks.core.networks import NetworkTable

from .conftest import SEPOLIA_USDC, TX_A


class ScriptedProvider(AsyncJSONBaseProvider):
    """Answers each JSON-RPC method from a table of canned replies."""

    def __init__(self, replies: Dict[str, Callable[[Any], Dict[str, Any]]]) -> None:
        super().__init__()
        self.replies = replies
        self.calls: List[Tuple[str, Any]] = []

    async def make_request(self, method, params):
        self.calls.append((method, params))
        reply = self.replies[method](params)
        return {"jsonrpc": "2.0", "id": len(self.calls), **reply}


def _result(value):
    return lambda params: {"result": value}


def _rpc_error(message):
    return lambda params: {"error": {"code": -32000, "message": message}}


def _raises(exc):
    def reply(params):
        raise exc

    return reply


def _reader(replies) -> Tuple[Web3ChainReader, ScriptedProvider]:
    provider = ScriptedProvider(replies)
    network = NetworkTable().resolve("sepolia")
    return Web3ChainReader(network, web3=AsyncWeb3(provider)), provider


@pytest.mark.asyncio
async def test_unknown_transaction_is_none():
    reader, _ = _reader(
        {
            "eth_getTransactionByHash": _result(None),
            "eth_getTransactionReceipt": _result(None),
        }
    )

    assert await reader.get_transaction(TX_A) is None
    assert await reader.get_receipt(TX_A) is None


@pytest.mark.asyncio
async def test_json_rpc_error_is_a_chain_reader_error():
    reader, _ = _reader(
        {
            "eth_getTransactionByHash": _rpc_error("upstream unavailable"),
            "eth_getTransactionReceipt": _rpc_error("upstream unavailable"),
        }
    )

    with pytest.raises(ChainReaderError) as excinfo:
        await reader.get_receipt(TX_A)
    assert excinfo.value.network == "sepolia"
    with pytest.raises(ChainReaderError):
        await reader.get_transaction(TX_A)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "exc",
    [aiohttp.ClientConnectionError("connection refused"), asyncio.TimeoutError()],
)
async def test_transport_failure_is_a_chain_reader_error(exc):
    reader, _ = _reader({"eth_getTransactionReceipt": _raises(exc)})

    with pytest.raises(ChainReaderError):
        await reader.get_receipt(TX_A)


@pytest.mark.asyncio
async def test_token_decimals_are_cached_per_contract():
    six = "0x" + "00" * 31 + "06"
    reader, provider = _reader({"eth_call": _result(six)})

    assert await reader.get_token_decimals(SEPOLIA_USDC) == 6
    assert await reader.get_token_decimals(SEPOLIA_USDC.lower()) == 6
    assert [method for method, _ in provider.calls].count("eth_call") == 1


@pytest.mark.asyncio
async def test_decimals_failure_is_not_cached():
    six = "0x" + "00" * 31 + "06"
    replies = {"eth_call": _rpc_error("rate limited")}
    reader, _ = _reader(replies)

    with pytest.raises(ChainReaderError):
        await reader.get_token_decimals(SEPOLIA_USDC)

    replies["eth_call"] = _result(six)
    assert await reader.get_token_decimals(SEPOLIA_USDC) == 6


def test_readers_are_shared_per_resolved_network():
    readers = ChainReaders(NetworkTable())

    sepolia = readers.reader_for("sepolia")

    assert isinstance(sepolia, Web3ChainReader)
    assert readers.reader_for("sepolia") is sepolia
    assert readers.reader_for("bsc-testnet") is readers.reader_for("bnb-testnet")
    assert readers.reader_for("bnb-testnet") is not sepolia
