"""
Payment types — methods, gateway results and ledger records.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class PaymentMethod(Enum):
    GCASH = "gcash"
    PAYMAYA = "paymaya"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"

    @classmethod
    def parse(cls, value: str) -> PaymentMethod | None:
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


# ═══════════════════════════════════════════════════════════════════════════════
# Gateway results
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Charge:
    """A confirmed charge. ``transaction_id`` is the gateway reference."""

    transaction_id: str
    amount_cents: int
    method: PaymentMethod
    payer_id: str


@dataclass(frozen=True, slots=True)
class Decline:
    reason: str


@dataclass(frozen=True, slots=True)
class MethodInfo:
    id: PaymentMethod
    name: str
    description: str


# ═══════════════════════════════════════════════════════════════════════════════
# Ledger records
# ═══════════════════════════════════════════════════════════════════════════════


class PaymentStatus(Enum):
    COMPLETED = "completed"


@dataclass(frozen=True, slots=True)
class PaymentRecord:
    """Written once, after the gateway confirmed. Never updated."""

    id: str
    order_id: str
    user_id: str
    amount_cents: int
    method: PaymentMethod
    reference: str
    status: PaymentStatus
    created_at: datetime


class RefundReason(Enum):
    INVENTORY_RACE_LOST = "inventory_race_lost"
    CHECKOUT_ABORTED = "checkout_aborted"
    BUYER_CANCELLED = "buyer_cancelled"


class RefundStatus(Enum):
    REQUIRED = "required"
    ISSUED = "issued"


@dataclass(frozen=True, slots=True)
class Refund:
    """
    A charge that has to be reversed.

    Stays REQUIRED until the gateway confirmed the reversal, either through
    the automatic attempt or an operator working ``open_refunds()``.
    """

    id: str
    order_id: str | None
    user_id: str
    amount_cents: int
    method: PaymentMethod
    charge_reference: str
    reason: RefundReason
    status: RefundStatus
    refund_reference: str | None
    created_at: datetime
    resolved_at: datetime | None = None

    @property
    def charge(self) -> Charge:
        return Charge(
            transaction_id=self.charge_reference,
            amount_cents=self.amount_cents,
            method=self.method,
            payer_id=self.user_id,
        )


__all__ = (
    "PaymentMethod",
    "Charge",
    "Decline",
    "MethodInfo",
    "PaymentStatus",
    "PaymentRecord",
    "RefundReason",
    "RefundStatus",
    "Refund",
)
