"""
Helpers for constructing the JSON payloads returned by the payment-link API.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from .models import PaymentRequest, format_amount, to_epoch_millis, utcnow

__all__ = [
    "PAYMENT_SCHEME",
    "PaymentRequired",
    "build_listing_entry",
    "build_payment_required",
    "build_request_body",
    "build_settled_view",
    "payment_instructions",
]

PAYMENT_SCHEME = "x402"


@dataclass(frozen=True)
class PaymentRequired:
    """A ``402 Payment Required`` advertisement: protocol headers plus body."""

    headers: Dict[str, str]
    body: Dict[str, Any]

    status_code = 402


def payment_instructions(request: PaymentRequest) -> str:
    return (
        f"Send {format_amount(request.amount)} {request.token} "
        f"on {request.network} to {request.receiver}"
    )


def build_payment_required(request: PaymentRequest) -> PaymentRequired:
    amount = format_amount(request.amount)
    headers = {
        "X-Payment-Scheme": PAYMENT_SCHEME,
        "X-Payment-Amount": amount,
        "X-Payment-Token": request.token,
        "X-Payment-Network": request.network,
        "X-Payment-Receiver": request.receiver,
    }
    body = {
        "error": "Payment Required",
        "code": 402,
        "payment": {
            "scheme": PAYMENT_SCHEME,
            "id": request.id,
            "amount": amount,
            "token": request.token,
            "network": request.network,
            "receiver": request.receiver,
            "description": request.description,
            "expiresAt": to_epoch_millis(request.expires_at),
            "instructions": payment_instructions(request),
        },
    }
    return PaymentRequired(headers=headers, body=body)


def build_settled_view(request: PaymentRequest) -> Dict[str, Any]:
    return {
        "id": request.id,
        "amount": format_amount(request.amount),
        "token": request.token,
        "receiver": request.receiver,
        "network": request.network,
        "description": request.description,
        "status": request.status.value,
        "txHash": request.tx_hash,
        "paidAt": to_epoch_millis(request.paid_at),
    }


def build_request_body(request: PaymentRequest) -> Dict[str, Any]:
    """Full persisted shape, timestamps as epoch milliseconds."""
    return {
        "id": request.id,
        "token": request.token,
        "amount": format_amount(request.amount),
        "receiver": request.receiver,
        "payer": request.payer,
        "description": request.description,
        "network": request.network,
        "status": request.status.value,
        "createdAt": to_epoch_millis(request.created_at),
        "expiresAt": to_epoch_millis(request.expires_at),
        "txHash": request.tx_hash,
        "paidAt": to_epoch_millis(request.paid_at),
        "creatorWallet": request.creator_wallet,
    }


def build_listing_entry(request: PaymentRequest, now: Optional[datetime] = None) -> Dict[str, Any]:
    entry = build_request_body(request)
    entry["isExpired"] = request.is_expired(now or utcnow())
    entry["isPaid"] = request.is_paid
    return entry
