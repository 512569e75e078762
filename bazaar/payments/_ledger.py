"""
Payment ledger — completed payments and refund obligations.

Payment records are immutable. Money that has to go back to a buyer is
tracked as a separate Refund row, so an operator can always list what is
still owed with ``open_refunds()``.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Protocol

from kungfu import Result, Ok, Error

from bazaar._types import new_id, utcnow
from bazaar.errors import StoreError
from bazaar.payments._types import (
    Charge,
    PaymentRecord,
    PaymentStatus,
    Refund,
    RefundReason,
    RefundStatus,
)


class PaymentLedger(Protocol):
    async def record_payment(
        self, order_id: str, charge: Charge
    ) -> Result[PaymentRecord, StoreError]:
        """One completed payment per order; a second one is a StoreError."""
        ...

    async def payment_for_order(
        self, order_id: str
    ) -> Result[PaymentRecord | None, StoreError]:
        ...

    async def payments_by_user(
        self, user_id: str
    ) -> Result[list[PaymentRecord], StoreError]:
        """Newest first."""
        ...

    async def raise_refund(
        self,
        charge: Charge,
        reason: RefundReason,
        *,
        order_id: str | None = None,
    ) -> Result[Refund, StoreError]:
        ...

    async def mark_refund_issued(
        self, refund_id: str, reference: str
    ) -> Result[Refund | None, StoreError]:
        """REQUIRED → ISSUED. Ok(None) if missing or already issued."""
        ...

    async def open_refunds(self) -> Result[list[Refund], StoreError]:
        """Refunds still REQUIRED, oldest first."""
        ...

    async def refunds_for_order(self, order_id: str) -> Result[list[Refund], StoreError]:
        ...


def new_payment(order_id: str, charge: Charge) -> PaymentRecord:
    return PaymentRecord(
        id=new_id("pay"),
        order_id=order_id,
        user_id=charge.payer_id,
        amount_cents=charge.amount_cents,
        method=charge.method,
        reference=charge.transaction_id,
        status=PaymentStatus.COMPLETED,
        created_at=utcnow(),
    )


def new_refund(charge: Charge, reason: RefundReason, order_id: str | None) -> Refund:
    return Refund(
        id=new_id("ref"),
        order_id=order_id,
        user_id=charge.payer_id,
        amount_cents=charge.amount_cents,
        method=charge.method,
        charge_reference=charge.transaction_id,
        reason=reason,
        status=RefundStatus.REQUIRED,
        refund_reference=None,
        created_at=utcnow(),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Ledger — For Testing
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryPaymentLedger:
    def __init__(self) -> None:
        self._payments: dict[str, PaymentRecord] = {}
        self._refunds: dict[str, Refund] = {}
        self._lock = asyncio.Lock()

    async def record_payment(
        self, order_id: str, charge: Charge
    ) -> Result[PaymentRecord, StoreError]:
        async with self._lock:
            if order_id in self._payments:
                return Error(StoreError(f"Order {order_id} already has a payment"))
            record = new_payment(order_id, charge)
            self._payments[order_id] = record
            return Ok(record)

    async def payment_for_order(
        self, order_id: str
    ) -> Result[PaymentRecord | None, StoreError]:
        async with self._lock:
            return Ok(self._payments.get(order_id))

    async def payments_by_user(
        self, user_id: str
    ) -> Result[list[PaymentRecord], StoreError]:
        async with self._lock:
            records = [p for p in self._payments.values() if p.user_id == user_id]
        records.sort(key=lambda p: p.created_at, reverse=True)
        return Ok(records)

    async def raise_refund(
        self,
        charge: Charge,
        reason: RefundReason,
        *,
        order_id: str | None = None,
    ) -> Result[Refund, StoreError]:
        refund = new_refund(charge, reason, order_id)
        async with self._lock:
            self._refunds[refund.id] = refund
        return Ok(refund)

    async def mark_refund_issued(
        self, refund_id: str, reference: str
    ) -> Result[Refund | None, StoreError]:
        async with self._lock:
            refund = self._refunds.get(refund_id)
            if refund is None or refund.status is not RefundStatus.REQUIRED:
                return Ok(None)
            issued = replace(
                refund,
                status=RefundStatus.ISSUED,
                refund_reference=reference,
                resolved_at=utcnow(),
            )
            self._refunds[refund_id] = issued
            return Ok(issued)

    async def open_refunds(self) -> Result[list[Refund], StoreError]:
        async with self._lock:
            refunds = [r for r in self._refunds.values() if r.status is RefundStatus.REQUIRED]
        refunds.sort(key=lambda r: r.created_at)
        return Ok(refunds)

    async def refunds_for_order(self, order_id: str) -> Result[list[Refund], StoreError]:
        async with self._lock:
            refunds = [r for r in self._refunds.values() if r.order_id == order_id]
        refunds.sort(key=lambda r: r.created_at)
        return Ok(refunds)


__all__ = ("PaymentLedger", "MemoryPaymentLedger", "new_payment", "new_refund")
