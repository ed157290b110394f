"""
Backend-agnostic store contract for payment requests.
"""

from __future__ import annotations

import enum
import secrets
import string
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

from ..core.models import PaymentRequest, RequestDraft, utcnow

__all__ = [
    "PaymentRequestStore",
    "SettleOutcome",
    "SettleResult",
    "new_request_id",
]

_ID_ALPHABET = string.ascii_uppercase + string.digits
_ID_LENGTH = 9


def new_request_id() -> str:
    return "REQ-" + "".join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_LENGTH))


class SettleOutcome(str, enum.Enum):
    SETTLED = "settled"
    ALREADY_SETTLED = "already_settled"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class SettleResult:
    outcome: SettleOutcome
    request: Optional[PaymentRequest] = None

    @property
    def settled(self) -> bool:
        return self.outcome is SettleOutcome.SETTLED


class PaymentRequestStore(ABC):
    """
    Durable record of payment requests.

    ``settle_if_pending`` is the only operation that changes ``status``. Stores
    that report ``atomic_settle = False`` rely on the caller to serialise it.
    """

    backend_name = "abstract"
    atomic_settle = True

    def __init__(self, *, clock: Callable[[], datetime] = utcnow) -> None:
        self._clock = clock

    @abstractmethod
    async def create(self, draft: RequestDraft) -> PaymentRequest:
        ...

    @abstractmethod
    async def get(self, request_id: str) -> Optional[PaymentRequest]:
        ...

    @abstractmethod
    async def settle_if_pending(self, request_id: str, tx_hash: str) -> SettleResult:
        ...

    @abstractmethod
    async def list(self, creator_wallet: Optional[str] = None) -> List[PaymentRequest]:
        """Requests newest first, optionally only those owned by ``creator_wallet``."""

    @abstractmethod
    async def delete(self, request_id: str) -> bool:
        ...

    async def open(self) -> None:
        """Prepare the backend (create files, tables, ...)."""

    async def close(self) -> None:
        """Release backend resources."""
