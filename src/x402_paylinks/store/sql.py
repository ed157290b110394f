"""
Relational store backed by SQLAlchemy's asyncio extension.

Settlement is a single conditional ``UPDATE ... WHERE status = 'PENDING'``; the
database decides the winner when two callers race.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, List, Optional

from sqlalchemy import DateTime, Enum, String, Text, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ..core.models import PaymentRequest, PaymentStatus, RequestDraft, format_amount, utcnow
from .base import PaymentRequestStore, SettleOutcome, SettleResult, new_request_id

__all__ = ["Base", "PaymentRequestRow", "SqlPaymentRequestStore"]

logger = logging.getLogger(__name__)

_MAX_ID_ATTEMPTS = 5


class Base(DeclarativeBase):
    pass


class PaymentRequestRow(Base):
    __tablename__ = "payment_requests"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    token: Mapped[str] = mapped_column(String(32), nullable=False)
    amount: Mapped[str] = mapped_column(String(96), nullable=False)
    receiver: Mapped[str] = mapped_column(String(128), nullable=False)
    payer: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    network: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, native_enum=False, length=16),
        nullable=False,
        default=PaymentStatus.PENDING,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    tx_hash: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    creator_wallet: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, index=True)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _to_row(request: PaymentRequest) -> PaymentRequestRow:
    return PaymentRequestRow(
        id=request.id,
        token=request.token,
        amount=format_amount(request.amount),
        receiver=request.receiver,
        payer=request.payer,
        description=request.description,
        network=request.network,
        status=request.status,
        created_at=request.created_at,
        expires_at=request.expires_at,
        tx_hash=request.tx_hash,
        paid_at=request.paid_at,
        creator_wallet=request.creator_wallet,
    )


def _to_model(row: PaymentRequestRow) -> PaymentRequest:
    return PaymentRequest(
        id=row.id,
        token=row.token,
        amount=Decimal(row.amount),
        receiver=row.receiver,
        network=row.network,
        created_at=_aware(row.created_at),
        status=row.status,
        payer=row.payer,
        description=row.description or "",
        expires_at=_aware(row.expires_at),
        tx_hash=row.tx_hash,
        paid_at=_aware(row.paid_at),
        creator_wallet=row.creator_wallet,
    )


class SqlPaymentRequestStore(PaymentRequestStore):
    backend_name = "sql"

    def __init__(
        self,
        url: str,
        *,
        engine: Optional[AsyncEngine] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        super().__init__(clock=clock)
        self.engine = engine or create_async_engine(url)
        self._sessions = async_sessionmaker(self.engine, expire_on_commit=False)

    async def open(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Payment request tables ready on %s", self.engine.url.render_as_string())

    async def close(self) -> None:
        await self.engine.dispose()

    async def create(self, draft: RequestDraft) -> PaymentRequest:
        for _ in range(_MAX_ID_ATTEMPTS):
            request = PaymentRequest.from_draft(new_request_id(), draft, self._clock())
            async with self._sessions() as session:
                session.add(_to_row(request))
                try:
                    await session.commit()
                except IntegrityError:
                    await session.rollback()
                    logger.warning("Request id collision on %s, retrying", request.id)
                    continue
            return request
        raise RuntimeError(f"Could not allocate a unique request id after {_MAX_ID_ATTEMPTS} attempts")

    async def get(self, request_id: str) -> Optional[PaymentRequest]:
        async with self._sessions() as session:
            row = await session.get(PaymentRequestRow, request_id)
            return _to_model(row) if row is not None else None

    async def settle_if_pending(self, request_id: str, tx_hash: str) -> SettleResult:
        statement = (
            update(PaymentRequestRow)
            .where(
                PaymentRequestRow.id == request_id,
                PaymentRequestRow.status == PaymentStatus.PENDING,
            )
            .values(status=PaymentStatus.PAID, tx_hash=tx_hash, paid_at=self._clock())
            .execution_options(synchronize_session=False)
        )
        async with self._sessions() as session:
            result = await session.execute(statement)
            await session.commit()
            row = await session.get(PaymentRequestRow, request_id)

        if row is None:
            return SettleResult(SettleOutcome.NOT_FOUND)
        if result.rowcount == 1:
            return SettleResult(SettleOutcome.SETTLED, _to_model(row))
        return SettleResult(SettleOutcome.ALREADY_SETTLED, _to_model(row))

    async def list(self, creator_wallet: Optional[str] = None) -> List[PaymentRequest]:
        statement = select(PaymentRequestRow).order_by(PaymentRequestRow.created_at.desc())
        if creator_wallet:
            statement = statement.where(PaymentRequestRow.creator_wallet == creator_wallet)
        async with self._sessions() as session:
            rows = (await session.scalars(statement)).all()
        return [_to_model(row) for row in rows]

    async def delete(self, request_id: str) -> bool:
        async with self._sessions() as session:
            row = await session.get(PaymentRequestRow, request_id)
            if row is None:
                return False
            await session.delete(row)
            await session.commit()
        return True
