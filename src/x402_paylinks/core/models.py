"""
Data model for payment requests.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional

__all__ = [
    "PaymentRequest",
    "PaymentStatus",
    "RequestDraft",
    "format_amount",
    "from_epoch_millis",
    "parse_amount",
    "to_epoch_millis",
    "utcnow",
]


# uint256 holds at most 78 decimal digits; ERC-20 and native assets use <= 18 decimals.
MAX_INTEGER_DIGITS = 78
MAX_FRACTION_DIGITS = 18


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_epoch_millis(value: Optional[datetime]) -> Optional[int]:
    if value is None:
        return None
    return int(value.timestamp() * 1000)


def from_epoch_millis(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def parse_amount(raw: Any) -> Decimal:
    """
    Parse a human-unit amount and require it to be a finite, positive decimal
    small enough to be settled on chain.

    Floats are routed through ``str`` so ``0.1`` stays ``0.1``.
    """
    if isinstance(raw, bool) or raw is None:
        raise ValueError(f"amount must be a decimal number, got {raw!r}")
    try:
        amount = Decimal(str(raw).strip())
    except InvalidOperation as exc:
        raise ValueError(f"amount must be a decimal number, got {raw!r}") from exc
    if not amount.is_finite() or amount <= 0:
        raise ValueError(f"amount must be greater than zero, got {raw!r}")
    if amount.adjusted() >= MAX_INTEGER_DIGITS:
        raise ValueError(f"amount must have at most {MAX_INTEGER_DIGITS} integer digits")
    if _fraction_digits(amount) > MAX_FRACTION_DIGITS:
        raise ValueError(f"amount must have at most {MAX_FRACTION_DIGITS} decimal places")
    return amount


def _fraction_digits(amount: Decimal) -> int:
    _, digits, exponent = amount.as_tuple()
    trailing_zeros = len(digits) - len("".join(map(str, digits)).rstrip("0"))
    return max(0, -(exponent + trailing_zeros))


def format_amount(amount: Decimal) -> str:
    return format(amount, "f")


@dataclass(frozen=True)
class RequestDraft:
    """
    Validated creation input handed from the lifecycle to a store.
    """

    token: str
    amount: Decimal
    receiver: str
    network: str
    payer: Optional[str] = None
    description: str = ""
    expires_in_days: Optional[int] = None
    creator_wallet: Optional[str] = None

    def expires_at(self, created_at: datetime) -> Optional[datetime]:
        if not self.expires_in_days:
            return None
        return created_at + timedelta(days=self.expires_in_days)


@dataclass(frozen=True)
class PaymentRequest:
    id: str
    token: str
    amount: Decimal
    receiver: str
    network: str
    created_at: datetime
    status: PaymentStatus = PaymentStatus.PENDING
    payer: Optional[str] = None
    description: str = ""
    expires_at: Optional[datetime] = None
    tx_hash: Optional[str] = None
    paid_at: Optional[datetime] = None
    creator_wallet: Optional[str] = None

    @classmethod
    def from_draft(
        cls, request_id: str, draft: RequestDraft, created_at: datetime
    ) -> "PaymentRequest":
        return cls(
            id=request_id,
            token=draft.token,
            amount=draft.amount,
            receiver=draft.receiver,
            network=draft.network,
            created_at=created_at,
            payer=draft.payer,
            description=draft.description,
            expires_at=draft.expires_at(created_at),
            creator_wallet=draft.creator_wallet,
        )

    @property
    def is_paid(self) -> bool:
        return self.status is PaymentStatus.PAID

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or utcnow()) > self.expires_at

    def settled(self, tx_hash: str, paid_at: datetime) -> "PaymentRequest":
        if self.is_paid:
            raise ValueError(f"Request {self.id} is already settled")
        return replace(self, status=PaymentStatus.PAID, tx_hash=tx_hash, paid_at=paid_at)

    def to_record(self) -> Dict[str, Any]:
        """Serialise for the flat-file store; instants are ISO-8601 strings."""
        return {
            "id": self.id,
            "token": self.token,
            "amount": format_amount(self.amount),
            "receiver": self.receiver,
            "payer": self.payer,
            "description": self.description,
            "network": self.network,
            "status": self.status.value,
            "createdAt": self.created_at.isoformat(),
            "expiresAt": self.expires_at.isoformat() if self.expires_at else None,
            "txHash": self.tx_hash,
            "paidAt": self.paid_at.isoformat() if self.paid_at else None,
            "creatorWallet": self.creator_wallet,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "PaymentRequest":
        def _instant(key: str) -> Optional[datetime]:
            value = record.get(key)
            return datetime.fromisoformat(value) if value else None

        return cls(
            id=record["id"],
            token=record["token"],
            amount=Decimal(record["amount"]),
            receiver=record["receiver"],
            network=record["network"],
            created_at=datetime.fromisoformat(record["createdAt"]),
            status=PaymentStatus(record.get("status", PaymentStatus.PENDING.value)),
            payer=record.get("payer"),
            description=record.get("description") or "",
            expires_at=_instant("expiresAt"),
            tx_hash=record.get("txHash"),
            paid_at=_instant("paidAt"),
            creator_wallet=record.get("creatorWallet"),
        )
