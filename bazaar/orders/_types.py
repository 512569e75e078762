"""
Order types — statuses, the transition table and records.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum


# ═══════════════════════════════════════════════════════════════════════════════
# Status — Order Lifecycle
# ═══════════════════════════════════════════════════════════════════════════════


class OrderStatus(Enum):
    """
    Lifecycle:
        PENDING → CONFIRMED → SHIPPED → DELIVERED
                → CANCELLED (restores reserved stock)
    """

    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


TRANSITIONS: Mapping[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.SHIPPED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def can_transition(current: OrderStatus, new: OrderStatus) -> bool:
    return new in TRANSITIONS[current]


# ═══════════════════════════════════════════════════════════════════════════════
# Records
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class ShippingInfo:
    full_name: str
    address: str
    city: str
    postal_code: str
    phone: str

    def to_dict(self) -> dict[str, str]:
        return {
            "full_name": self.full_name,
            "address": self.address,
            "city": self.city,
            "postal_code": self.postal_code,
            "phone": self.phone,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, str]) -> ShippingInfo:
        return cls(
            full_name=data["full_name"],
            address=data["address"],
            city=data["city"],
            postal_code=data["postal_code"],
            phone=data["phone"],
        )


@dataclass(frozen=True, slots=True)
class NewOrder:
    """Fields for ``create_order``. Amount is captured by the caller."""

    item_id: str
    buyer_id: str
    seller_id: str
    amount_cents: int
    quantity: int
    shipping: ShippingInfo | None = None


@dataclass(frozen=True, slots=True)
class Order:
    id: str
    item_id: str
    buyer_id: str
    seller_id: str
    amount_cents: int
    quantity: int
    status: OrderStatus
    shipping: ShippingInfo | None
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True, slots=True)
class OrderStats:
    """Seller dashboard numbers. Cancelled orders never count as sales."""

    total_sales: int
    total_revenue_cents: int
    pending_orders: int
    completed_orders: int

    @classmethod
    def of(cls, orders: list[Order]) -> OrderStats:
        live = [o for o in orders if o.status is not OrderStatus.CANCELLED]
        return cls(
            total_sales=len(live),
            total_revenue_cents=sum(o.amount_cents for o in live),
            pending_orders=sum(1 for o in orders if o.status is OrderStatus.PENDING),
            completed_orders=sum(1 for o in orders if o.status is OrderStatus.DELIVERED),
        )


__all__ = (
    "OrderStatus",
    "TRANSITIONS",
    "can_transition",
    "ShippingInfo",
    "NewOrder",
    "Order",
    "OrderStats",
)
