"""
Extract the realized ``(amount, recipient)`` of a payment from chain data.

Native transfers read the transaction's ``value`` and ``to`` fields. ERC-20
transfers read the first ``Transfer(address,address,uint256)`` log emitted by
the token's contract.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, localcontext
from typing import Any, Mapping, Optional, Tuple

from eth_utils import keccak, to_checksum_address
from hexbytes import HexBytes

from .chain import ChainReader
from .errors import TransferExtractionError, VerdictReason
from .networks import NATIVE_DECIMALS, TokenRegistry, TransferKind, classify_transfer

__all__ = [
    "TRANSFER_TOPIC",
    "RealizedTransfer",
    "TransferExtractor",
    "decode_transfer_log",
    "to_human_units",
]

logger = logging.getLogger(__name__)

TRANSFER_TOPIC = HexBytes(keccak(text="Transfer(address,address,uint256)"))

# uint256 has at most 78 decimal digits
_UINT256_PRECISION = 80


def to_human_units(value: int, decimals: int) -> Decimal:
    """
    Scale a base-unit integer down by ``decimals`` without rounding.
    """
    with localcontext() as ctx:
        ctx.prec = _UINT256_PRECISION
        return Decimal(value).scaleb(-decimals)


def _as_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value, 16) if value.startswith("0x") else int(value)
    return int.from_bytes(HexBytes(value), "big")


def _address_from_topic(topic: HexBytes) -> str:
    return to_checksum_address("0x" + bytes(topic[-20:]).hex())


def decode_transfer_log(log: Mapping[str, Any]) -> Optional[Tuple[str, str, int]]:
    """
    Return ``(sender, recipient, value)`` if ``log`` is an ERC-20 ``Transfer``.

    ERC-721 transfers share the topic but index the token id as a fourth topic,
    so they are rejected by the topic count.
    """
    topics = [HexBytes(topic) for topic in log.get("topics") or ()]
    if len(topics) != 3 or topics[0] != TRANSFER_TOPIC:
        return None
    data = HexBytes(log.get("data") or b"")
    if len(data) != 32:
        return None
    return (
        _address_from_topic(topics[1]),
        _address_from_topic(topics[2]),
        int.from_bytes(data, "big"),
    )


@dataclass(frozen=True)
class RealizedTransfer:
    amount: Decimal
    recipient: str
    kind: TransferKind
    contract: Optional[str] = None


class TransferExtractor:
    def __init__(self, tokens: TokenRegistry) -> None:
        self.tokens = tokens

    async def extract(
        self,
        reader: ChainReader,
        tx_hash: str,
        receipt: Mapping[str, Any],
        token: str,
    ) -> RealizedTransfer:
        kind = classify_transfer(token, reader.network)
        if kind is TransferKind.NATIVE:
            return await self._extract_native(reader, tx_hash)
        return await self._extract_erc20(reader, receipt, token)

    async def _extract_native(self, reader: ChainReader, tx_hash: str) -> RealizedTransfer:
        tx = await reader.get_transaction(tx_hash)
        if tx is None:
            raise TransferExtractionError(
                VerdictReason.TRANSACTION_NOT_FOUND,
                f"Transaction {tx_hash} not found on {reader.network.name}",
            )
        return RealizedTransfer(
            amount=to_human_units(_as_int(tx.get("value") or 0), NATIVE_DECIMALS),
            recipient=tx.get("to") or "",
            kind=TransferKind.NATIVE,
        )

    async def _extract_erc20(
        self,
        reader: ChainReader,
        receipt: Mapping[str, Any],
        token: str,
    ) -> RealizedTransfer:
        network = reader.network
        contract = self.tokens.resolve(network, token)
        if contract is None:
            raise TransferExtractionError(
                VerdictReason.UNSUPPORTED_TOKEN,
                f"No {token} contract known on {network.name}",
            )

        decimals = await reader.get_token_decimals(contract)
        for log in receipt.get("logs") or ():
            if str(log.get("address", "")).lower() != contract.lower():
                continue
            decoded = decode_transfer_log(log)
            if decoded is None:
                continue
            _, recipient, value = decoded
            return RealizedTransfer(
                amount=to_human_units(value, decimals),
                recipient=recipient,
                kind=TransferKind.TOKEN,
                contract=contract,
            )

        logger.debug("No %s Transfer log from %s in receipt", token, contract)
        raise TransferExtractionError(
            VerdictReason.NO_TRANSFER_EVENT,
            f"No {token} Transfer event from {contract}",
        )
