"""
Error taxonomy — every failure is a value with a stable code and a
human-readable message.

    match await checkout.place_order(...):
        case Ok(order): ...
        case Error(InventoryRaceLost() as e): show(e.message)  # refund wording
        case Error(e): show(e.message)

Storage backends report ``StoreError``; the checkout layer folds it into
``StorageFailure`` so callers only ever see ``CheckoutError`` members.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from bazaar._types import format_cents


# ═══════════════════════════════════════════════════════════════════════════════
# Store Error — backend boundary
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class StoreError:
    """Storage operation error."""

    message: str
    cause: Exception | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Input & access
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class ValidationError:
    """Bad input, rejected before any remote call."""

    field: str
    reason: str

    code: ClassVar[str] = "VALIDATION_ERROR"

    @property
    def message(self) -> str:
        return f"Invalid {self.field}: {self.reason}"


@dataclass(frozen=True, slots=True)
class NotFound:
    entity: str
    id: str

    code: ClassVar[str] = "NOT_FOUND"

    @property
    def message(self) -> str:
        return f"{self.entity} {self.id} not found"


@dataclass(frozen=True, slots=True)
class Forbidden:
    reason: str

    code: ClassVar[str] = "FORBIDDEN"

    @property
    def message(self) -> str:
        return self.reason


# ═══════════════════════════════════════════════════════════════════════════════
# Inventory
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class OutOfStock:
    """Not enough stock when the purchase was checked. Nothing was charged."""

    item_id: str
    requested: int
    available: int

    code: ClassVar[str] = "OUT_OF_STOCK"

    @property
    def message(self) -> str:
        if self.available == 0:
            return "This item is sold out."
        return f"Only {self.available} left in stock, you asked for {self.requested}."


@dataclass(frozen=True, slots=True)
class InventoryRaceLost:
    """
    Payment succeeded but the stock was taken before the reservation committed.

    The order was cancelled and a refund obligation recorded. ``refund_issued``
    tells whether the gateway already reversed the charge.
    """

    item_id: str
    order_id: str
    amount_cents: int
    refund_id: str | None
    refund_issued: bool

    code: ClassVar[str] = "INVENTORY_RACE_LOST"

    @property
    def message(self) -> str:
        amount = format_cents(self.amount_cents)
        if self.refund_issued:
            return (
                "Someone bought the last units while your payment was processing. "
                f"Your payment of {amount} has been refunded."
            )
        return (
            "Someone bought the last units while your payment was processing. "
            f"Your payment of {amount} will be refunded."
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Payment
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class PaymentDeclined:
    """Gateway refused the charge. No order, no payment record."""

    method: str
    reason: str

    code: ClassVar[str] = "PAYMENT_DECLINED"

    @property
    def message(self) -> str:
        return self.reason


@dataclass(frozen=True, slots=True)
class PaymentOutcomeUnknown:
    """
    Gateway did not answer in time (or the call broke mid-flight).

    The charge may or may not have gone through. Callers must check their
    orders and payment history before trying again.
    """

    method: str
    amount_cents: int
    reason: str

    code: ClassVar[str] = "PAYMENT_OUTCOME_UNKNOWN"

    @property
    def message(self) -> str:
        return (
            f"We could not confirm your payment of {format_cents(self.amount_cents)} "
            f"({self.reason}). Check your purchase history before trying again."
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class InvalidTransition:
    order_id: str
    current: str
    requested: str

    code: ClassVar[str] = "INVALID_TRANSITION"

    @property
    def message(self) -> str:
        return f"Order {self.order_id} cannot move from {self.current} to {self.requested}"


@dataclass(frozen=True, slots=True)
class OrderNotSettled:
    """Checkout for this order has not recorded its payment yet."""

    order_id: str

    code: ClassVar[str] = "ORDER_NOT_SETTLED"

    @property
    def message(self) -> str:
        return f"Checkout for order {self.order_id} is still in progress"


# ═══════════════════════════════════════════════════════════════════════════════
# Attempts & storage
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class DuplicateAttempt:
    """A checkout attempt key was reused for an attempt that did not complete."""

    key: str
    state: str
    detail: str | None = None

    code: ClassVar[str] = "DUPLICATE_ATTEMPT"

    @property
    def message(self) -> str:
        if self.state == "pending":
            return (
                "A checkout with this key is still in progress or its payment outcome "
                "is unknown. Check your orders before trying again."
            )
        detail = f": {self.detail}" if self.detail else ""
        return f"This checkout attempt already failed{detail}. Start a new attempt."


@dataclass(frozen=True, slots=True)
class StorageFailure:
    """
    A storage call failed.

    ``refund_id`` is set when money had already moved and a refund
    obligation was recorded while unwinding.
    """

    operation: str
    detail: str
    refund_id: str | None = None

    code: ClassVar[str] = "STORAGE_FAILURE"

    @property
    def message(self) -> str:
        if self.refund_id is not None:
            return (
                f"Your purchase could not be completed ({self.operation}). "
                "Your payment will be refunded."
            )
        return f"Service temporarily unavailable ({self.operation})"


type CheckoutError = (
    ValidationError
    | NotFound
    | Forbidden
    | OutOfStock
    | InventoryRaceLost
    | PaymentDeclined
    | PaymentOutcomeUnknown
    | InvalidTransition
    | OrderNotSettled
    | DuplicateAttempt
    | StorageFailure
)


def storage_failure(operation: str, error: StoreError) -> StorageFailure:
    return StorageFailure(operation=operation, detail=error.message)


__all__ = (
    "StoreError",
    "ValidationError",
    "NotFound",
    "Forbidden",
    "OutOfStock",
    "InventoryRaceLost",
    "PaymentDeclined",
    "PaymentOutcomeUnknown",
    "InvalidTransition",
    "OrderNotSettled",
    "DuplicateAttempt",
    "StorageFailure",
    "CheckoutError",
    "storage_failure",
)
