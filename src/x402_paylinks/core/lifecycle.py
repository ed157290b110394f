"""
Request lifecycle: creation, the payment-required protocol, and settlement.

Storage only tracks ``PENDING`` and ``PAID``. Whether a pending request is still
payable or already expired is decided here, at read time, from the wall clock.
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from ..store.base import PaymentRequestStore, SettleOutcome
from .errors import (
    AlreadyPaidError,
    ChainReaderError,
    ExpiredError,
    NotFoundError,
    ValidationError,
    VerificationInconclusiveError,
)
from .models import PaymentRequest, RequestDraft, parse_amount, utcnow
from .payloads import PaymentRequired, build_payment_required, build_settled_view
from .verification import Verdict, VerificationEngine

__all__ = [
    "PaymentLinkService",
    "PaymentSubmission",
    "RequestState",
    "RequestView",
    "normalize_tx_hash",
]

logger = logging.getLogger(__name__)

_TX_HASH_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")


class RequestState(str, enum.Enum):
    PAYABLE = "payable"
    EXPIRED = "expired"
    PAID = "paid"


@dataclass(frozen=True)
class RequestView:
    request: PaymentRequest
    state: RequestState

    def payment_required(self) -> PaymentRequired:
        if self.state is RequestState.EXPIRED:
            raise ExpiredError(self.request.id)
        if self.state is RequestState.PAID:
            raise AlreadyPaidError(self.request.id, self.request.tx_hash)
        return build_payment_required(self.request)

    def settled(self) -> Dict[str, Any]:
        return build_settled_view(self.request)


@dataclass(frozen=True)
class PaymentSubmission:
    """
    Result of submitting a transaction for a request.

    ``verdict`` is ``None`` when the same transaction had already settled the
    request and nothing was re-verified.
    """

    request: PaymentRequest
    verdict: Optional[Verdict]

    @property
    def accepted(self) -> bool:
        return self.verdict is None or self.verdict.valid


def _optional_text(name: str, value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string")
    return value.strip() or None


def _expiry_days(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError("expiresInDays must be a whole number of days")
    try:
        days = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError("expiresInDays must be a whole number of days") from exc
    if isinstance(value, float) and days != value:
        raise ValidationError("expiresInDays must be a whole number of days")
    if days < 0:
        raise ValidationError("expiresInDays must not be negative")
    return days or None


def normalize_tx_hash(tx_hash: Any) -> str:
    if not isinstance(tx_hash, str) or not _TX_HASH_RE.match(tx_hash.strip()):
        raise ValidationError("txHash must be a 0x-prefixed 32-byte hex string")
    return tx_hash.strip().lower()


class PaymentLinkService:
    def __init__(
        self,
        store: PaymentRequestStore,
        engine: VerificationEngine,
        *,
        default_network: str = "sepolia",
        link_prefix: str = "/r/",
        verify_timeout_seconds: float = 30.0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.engine = engine
        self.default_network = default_network
        self.link_prefix = link_prefix
        self.verify_timeout_seconds = verify_timeout_seconds
        self._clock = clock
        # only needed when the store cannot settle atomically on its own
        self._settle_lock: Optional[asyncio.Lock] = None if store.atomic_settle else asyncio.Lock()

    def now(self) -> datetime:
        return self._clock()

    def link_for(self, request_id: str) -> str:
        return f"{self.link_prefix}{request_id}"

    async def create_request(
        self,
        *,
        token: Any,
        amount: Any,
        receiver: Any,
        payer: Any = None,
        description: Any = None,
        network: Any = None,
        expires_in_days: Any = None,
        creator_wallet: Any = None,
    ) -> PaymentRequest:
        token = _optional_text("token", token)
        receiver = _optional_text("receiver", receiver)
        if not token or amount in (None, "") or not receiver:
            raise ValidationError("Missing required fields: token, amount and receiver are required")
        try:
            parsed_amount = parse_amount(amount)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

        draft = RequestDraft(
            token=token,
            amount=parsed_amount,
            receiver=receiver,
            network=_optional_text("network", network) or self.default_network,
            payer=_optional_text("payer", payer),
            description=_optional_text("description", description) or "",
            expires_in_days=_expiry_days(expires_in_days),
            creator_wallet=_optional_text("creatorWallet", creator_wallet),
        )
        request = await self.store.create(draft)
        logger.info(
            "Created payment request id=%s amount=%s %s network=%s receiver=%s expires_at=%s",
            request.id,
            draft.amount,
            request.token,
            request.network,
            request.receiver,
            request.expires_at.isoformat() if request.expires_at else None,
        )
        return request

    async def get_request(self, request_id: str) -> PaymentRequest:
        request = await self.store.get(request_id)
        if request is None:
            raise NotFoundError(request_id)
        return request

    def state_of(self, request: PaymentRequest) -> RequestState:
        if request.is_paid:
            return RequestState.PAID
        if request.is_expired(self.now()):
            return RequestState.EXPIRED
        return RequestState.PAYABLE

    async def describe(self, request_id: str) -> RequestView:
        request = await self.get_request(request_id)
        return RequestView(request=request, state=self.state_of(request))

    async def submit_payment(self, request_id: str, tx_hash: Any) -> PaymentSubmission:
        """
        Verify ``tx_hash`` against the request and settle it on success.

        An invalid verdict is returned, not raised, and leaves the store
        untouched. RPC failures and the verification deadline raise
        :class:`VerificationInconclusiveError`.
        """
        tx_hash = normalize_tx_hash(tx_hash)
        request = await self.get_request(request_id)

        state = self.state_of(request)
        if state is RequestState.PAID:
            return self._already_settled(request, tx_hash)
        if state is RequestState.EXPIRED:
            raise ExpiredError(request.id)

        verdict = await self._verify(request, tx_hash)
        if not verdict.valid:
            return PaymentSubmission(request=request, verdict=verdict)

        async with self._settle_guard():
            result = await self.store.settle_if_pending(request.id, tx_hash)

        if result.outcome is SettleOutcome.NOT_FOUND:
            raise NotFoundError(request.id)
        if result.outcome is SettleOutcome.ALREADY_SETTLED:
            return self._already_settled(result.request, tx_hash)

        logger.info(
            "Payment request id=%s settled by tx=%s block=%s",
            request.id,
            tx_hash,
            verdict.block_number,
        )
        return PaymentSubmission(request=result.request, verdict=verdict)

    async def list_requests(self, creator_wallet: Optional[str] = None) -> List[PaymentRequest]:
        return await self.store.list(creator_wallet or None)

    async def delete_request(self, request_id: str) -> None:
        if not await self.store.delete(request_id):
            raise NotFoundError(request_id)
        logger.info("Deleted payment request id=%s", request_id)

    async def _verify(self, request: PaymentRequest, tx_hash: str) -> Verdict:
        try:
            return await asyncio.wait_for(
                self.engine.verify(
                    tx_hash,
                    request.amount,
                    request.token,
                    request.receiver,
                    request.network,
                ),
                timeout=self.verify_timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            logger.warning(
                "Verification of tx=%s for request id=%s timed out after %ss",
                tx_hash,
                request.id,
                self.verify_timeout_seconds,
            )
            raise VerificationInconclusiveError(
                f"Timed out after {self.verify_timeout_seconds}s reading {tx_hash}"
            ) from exc
        except ChainReaderError as exc:
            logger.warning(
                "Verification of tx=%s for request id=%s inconclusive: %s",
                tx_hash,
                request.id,
                exc,
            )
            raise VerificationInconclusiveError(str(exc)) from exc

    def _already_settled(self, request: PaymentRequest, tx_hash: str) -> PaymentSubmission:
        if (request.tx_hash or "").lower() != tx_hash:
            raise AlreadyPaidError(request.id, request.tx_hash)
        logger.info("Payment request id=%s already settled by tx=%s", request.id, tx_hash)
        return PaymentSubmission(request=request, verdict=None)

    @contextlib.asynccontextmanager
    async def _settle_guard(self) -> AsyncIterator[None]:
        if self._settle_lock is None:
            yield
            return
        async with self._settle_lock:
            yield
