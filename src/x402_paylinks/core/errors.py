"""
Exception hierarchy shared by the payment-link service.
"""

from __future__ import annotations

import enum
from typing import Optional

__all__ = [
    "AlreadyPaidError",
    "ChainReaderError",
    "ConfigError",
    "ExpiredError",
    "NotFoundError",
    "PaymentLinkError",
    "TransferExtractionError",
    "ValidationError",
    "VerdictReason",
    "VerificationInconclusiveError",
]


class VerdictReason(str, enum.Enum):
    """Why a transaction does not satisfy a payment request."""

    TRANSACTION_NOT_FOUND = "TransactionNotFound"
    TRANSACTION_REVERTED = "TransactionReverted"
    UNSUPPORTED_TOKEN = "UnsupportedToken"
    NO_TRANSFER_EVENT = "NoTransferEvent"
    AMOUNT_OR_RECEIVER_MISMATCH = "AmountOrReceiverMismatch"


class ConfigError(Exception):
    """Raised when the supplied configuration is invalid."""


class TransferExtractionError(Exception):
    """A transaction carries no usable transfer for the expected asset."""

    def __init__(self, reason: VerdictReason, message: str) -> None:
        super().__init__(message)
        self.reason = reason


class ChainReaderError(Exception):
    """Raised when an RPC endpoint cannot answer a read."""

    def __init__(self, message: str, *, network: Optional[str] = None) -> None:
        super().__init__(message)
        self.network = network


class PaymentLinkError(Exception):
    """Base class for errors surfaced by the payment-link lifecycle."""

    status_code = 500

    def to_dict(self) -> dict:
        return {"error": str(self)}


class ValidationError(PaymentLinkError):
    """Missing or malformed request fields."""

    status_code = 400


class NotFoundError(PaymentLinkError):
    """Unknown payment request id."""

    status_code = 404

    def __init__(self, request_id: str) -> None:
        super().__init__(f"Payment request not found: {request_id}")
        self.request_id = request_id


class AlreadyPaidError(PaymentLinkError):
    """The request was already settled by another transaction."""

    status_code = 400

    def __init__(self, request_id: str, tx_hash: Optional[str] = None) -> None:
        super().__init__(f"Request already paid: {request_id}")
        self.request_id = request_id
        self.tx_hash = tx_hash

    def to_dict(self) -> dict:
        return {"error": "Request already paid", "txHash": self.tx_hash}


class ExpiredError(PaymentLinkError):
    """The request is past its deadline and no longer payable."""

    status_code = 410

    def __init__(self, request_id: str) -> None:
        super().__init__(f"Payment request expired: {request_id}")
        self.request_id = request_id

    def to_dict(self) -> dict:
        return {"error": "Payment request expired", "id": self.request_id}


class VerificationInconclusiveError(PaymentLinkError):
    """Chain state could not be read; the caller should retry later."""

    status_code = 503
    retry_after_seconds = 5

    def to_dict(self) -> dict:
        return {"error": "Verification inconclusive", "details": str(self), "retryable": True}
