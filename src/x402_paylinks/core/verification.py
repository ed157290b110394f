"""
Decide whether an on-chain transaction satisfies a payment request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Context, Decimal
from typing import Any, Dict, Optional

from .chain import ChainReaders
from .errors import TransferExtractionError, VerdictReason
from .models import format_amount
from .transfers import TransferExtractor

__all__ = [
    "Verdict",
    "VerdictReason",
    "VerificationEngine",
]

logger = logging.getLogger(__name__)

_DISPLAY_CONTEXT = Context(prec=80)


def _display(amount: Decimal) -> str:
    return format_amount(amount.normalize(_DISPLAY_CONTEXT))


@dataclass(frozen=True)
class Verdict:
    valid: bool
    tx_hash: str
    reason: Optional[VerdictReason] = None
    message: Optional[str] = None
    amount: Optional[Decimal] = None
    receiver: Optional[str] = None
    block_number: Optional[int] = None
    token_type: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def invalid(
        cls,
        tx_hash: str,
        reason: VerdictReason,
        message: str,
        **details: Any,
    ) -> "Verdict":
        return cls(valid=False, tx_hash=tx_hash, reason=reason, message=message, details=details)

    def to_dict(self) -> Dict[str, Any]:
        if not self.valid:
            return {
                "valid": False,
                "txHash": self.tx_hash,
                "reason": self.reason.value if self.reason else None,
                "error": self.message,
                "details": self.details,
            }
        return {
            "valid": True,
            "txHash": self.tx_hash,
            "amount": _display(self.amount) if self.amount is not None else None,
            "receiver": self.receiver,
            "blockNumber": self.block_number,
            "tokenType": self.token_type,
        }


class VerificationEngine:
    """
    Compares a transaction's realized transfer against an expected one.

    Amounts are accepted when the realized value is greater than or equal to the
    expected one, so payers who round up are not rejected. The engine only reads
    chain state: it does not retry, and :class:`ChainReaderError` propagates to
    the caller untouched.
    """

    def __init__(self, readers: ChainReaders, extractor: TransferExtractor) -> None:
        self.readers = readers
        self.extractor = extractor

    async def verify(
        self,
        tx_hash: str,
        expected_amount: Decimal,
        expected_token: str,
        expected_receiver: str,
        network: Optional[str],
    ) -> Verdict:
        reader = self.readers.reader_for(network)

        receipt = await reader.get_receipt(tx_hash)
        if receipt is None:
            return self._reject(
                Verdict.invalid(
                    tx_hash,
                    VerdictReason.TRANSACTION_NOT_FOUND,
                    f"Transaction {tx_hash} not found on {reader.network.name}",
                )
            )

        if int(receipt.get("status", 0)) != 1:
            return self._reject(
                Verdict.invalid(
                    tx_hash,
                    VerdictReason.TRANSACTION_REVERTED,
                    "Transaction failed",
                    blockNumber=receipt.get("blockNumber"),
                )
            )

        try:
            realized = await self.extractor.extract(reader, tx_hash, receipt, expected_token)
        except TransferExtractionError as exc:
            return self._reject(Verdict.invalid(tx_hash, exc.reason, str(exc)))

        amount_ok = realized.amount >= expected_amount
        receiver_ok = realized.recipient.lower() == expected_receiver.lower()
        if not (amount_ok and receiver_ok):
            return self._reject(
                Verdict.invalid(
                    tx_hash,
                    VerdictReason.AMOUNT_OR_RECEIVER_MISMATCH,
                    "Amount or receiver mismatch",
                    expected={
                        "amount": format_amount(expected_amount),
                        "receiver": expected_receiver,
                    },
                    actual={
                        "amount": _display(realized.amount),
                        "receiver": realized.recipient.lower(),
                    },
                )
            )

        verdict = Verdict(
            valid=True,
            tx_hash=tx_hash,
            amount=realized.amount,
            receiver=realized.recipient.lower(),
            block_number=receipt.get("blockNumber"),
            token_type=(
                expected_token.upper() if realized.contract is None else "ERC20"
            ),
        )
        logger.info(
            "Verified payment tx=%s network=%s amount=%s %s receiver=%s block=%s",
            tx_hash,
            reader.network.name,
            _display(realized.amount),
            expected_token,
            verdict.receiver,
            verdict.block_number,
        )
        return verdict

    @staticmethod
    def _reject(verdict: Verdict) -> Verdict:
        logger.info(
            "Rejected payment tx=%s reason=%s: %s",
            verdict.tx_hash,
            verdict.reason.value if verdict.reason else None,
            verdict.message,
        )
        return verdict
