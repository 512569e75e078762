"""
SQLAlchemy payment ledger — ``payments`` and ``refunds`` tables.
"""

from __future__ import annotations

from typing import Any, cast

from sqlalchemy import select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kungfu import Result, Ok, Error

from bazaar._types import utcnow
from bazaar.db import PaymentTable, RefundTable
from bazaar.errors import StoreError
from bazaar.payments._ledger import new_payment, new_refund
from bazaar.payments._types import (
    Charge,
    PaymentMethod,
    PaymentRecord,
    PaymentStatus,
    Refund,
    RefundReason,
    RefundStatus,
)


def _to_payment(row: PaymentTable) -> PaymentRecord:
    return PaymentRecord(
        id=row.id,
        order_id=row.order_id,
        user_id=row.user_id,
        amount_cents=row.amount_cents,
        method=PaymentMethod(row.method),
        reference=row.reference,
        status=PaymentStatus(row.status),
        created_at=row.created_at,
    )


def _to_refund(row: RefundTable) -> Refund:
    return Refund(
        id=row.id,
        order_id=row.order_id,
        user_id=row.user_id,
        amount_cents=row.amount_cents,
        method=PaymentMethod(row.method),
        charge_reference=row.charge_reference,
        reason=RefundReason(row.reason),
        status=RefundStatus(row.status),
        refund_reference=row.refund_reference,
        created_at=row.created_at,
        resolved_at=row.resolved_at,
    )


class SQLAlchemyPaymentLedger:
    """
    Payment ledger on SQLAlchemy.

    ``payments.order_id`` is unique, so the database enforces one payment
    per order.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def record_payment(
        self, order_id: str, charge: Charge
    ) -> Result[PaymentRecord, StoreError]:
        record = new_payment(order_id, charge)
        try:
            async with self._session_factory() as session:
                session.add(
                    PaymentTable(
                        id=record.id,
                        order_id=record.order_id,
                        user_id=record.user_id,
                        amount_cents=record.amount_cents,
                        method=record.method.value,
                        reference=record.reference,
                        status=record.status.value,
                        created_at=record.created_at,
                    )
                )
                await session.commit()
                return Ok(record)
        except Exception as e:
            return Error(StoreError(f"Failed to record payment: {e}", e))

    async def payment_for_order(
        self, order_id: str
    ) -> Result[PaymentRecord | None, StoreError]:
        try:
            async with self._session_factory() as session:
                stmt = select(PaymentTable).where(PaymentTable.order_id == order_id)
                row = (await session.execute(stmt)).scalar_one_or_none()
                return Ok(_to_payment(row) if row is not None else None)
        except Exception as e:
            return Error(StoreError(f"Failed to get payment: {e}", e))

    async def payments_by_user(
        self, user_id: str
    ) -> Result[list[PaymentRecord], StoreError]:
        try:
            async with self._session_factory() as session:
                stmt = (
                    select(PaymentTable)
                    .where(PaymentTable.user_id == user_id)
                    .order_by(PaymentTable.created_at.desc())
                )
                rows = (await session.execute(stmt)).scalars().all()
                return Ok([_to_payment(r) for r in rows])
        except Exception as e:
            return Error(StoreError(f"Failed to list payments: {e}", e))

    async def raise_refund(
        self,
        charge: Charge,
        reason: RefundReason,
        *,
        order_id: str | None = None,
    ) -> Result[Refund, StoreError]:
        refund = new_refund(charge, reason, order_id)
        try:
            async with self._session_factory() as session:
                session.add(
                    RefundTable(
                        id=refund.id,
                        order_id=refund.order_id,
                        user_id=refund.user_id,
                        amount_cents=refund.amount_cents,
                        method=refund.method.value,
                        charge_reference=refund.charge_reference,
                        reason=refund.reason.value,
                        status=refund.status.value,
                        refund_reference=None,
                        created_at=refund.created_at,
                        resolved_at=None,
                    )
                )
                await session.commit()
                return Ok(refund)
        except Exception as e:
            return Error(StoreError(f"Failed to raise refund: {e}", e))

    async def mark_refund_issued(
        self, refund_id: str, reference: str
    ) -> Result[Refund | None, StoreError]:
        try:
            async with self._session_factory() as session:
                stmt = (
                    update(RefundTable)
                    .where(
                        RefundTable.id == refund_id,
                        RefundTable.status == RefundStatus.REQUIRED.value,
                    )
                    .values(
                        status=RefundStatus.ISSUED.value,
                        refund_reference=reference,
                        resolved_at=utcnow(),
                    )
                )
                cursor = cast(CursorResult[Any], await session.execute(stmt))
                await session.commit()
                if cursor.rowcount != 1:
                    return Ok(None)
                row = await session.get(RefundTable, refund_id, populate_existing=True)
                return Ok(_to_refund(row) if row is not None else None)
        except Exception as e:
            return Error(StoreError(f"Failed to mark refund issued: {e}", e))

    async def open_refunds(self) -> Result[list[Refund], StoreError]:
        try:
            async with self._session_factory() as session:
                stmt = (
                    select(RefundTable)
                    .where(RefundTable.status == RefundStatus.REQUIRED.value)
                    .order_by(RefundTable.created_at)
                )
                rows = (await session.execute(stmt)).scalars().all()
                return Ok([_to_refund(r) for r in rows])
        except Exception as e:
            return Error(StoreError(f"Failed to list open refunds: {e}", e))

    async def refunds_for_order(self, order_id: str) -> Result[list[Refund], StoreError]:
        try:
            async with self._session_factory() as session:
                stmt = (
                    select(RefundTable)
                    .where(RefundTable.order_id == order_id)
                    .order_by(RefundTable.created_at)
                )
                rows = (await session.execute(stmt)).scalars().all()
                return Ok([_to_refund(r) for r in rows])
        except Exception as e:
            return Error(StoreError(f"Failed to list refunds: {e}", e))


__all__ = ("SQLAlchemyPaymentLedger",)
