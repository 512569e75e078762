"""
Order ledger — owns order records and their status transitions.

OrderStore is the raw storage protocol; OrderLedger enforces the
transition table on top of it with compare-and-set writes, so two
concurrent transitions out of the same status cannot both win.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Protocol

from kungfu import Result, Ok, Error

from bazaar._types import new_id, utcnow
from bazaar.errors import InvalidTransition, NotFound, StoreError
from bazaar.orders._types import (
    NewOrder,
    Order,
    OrderStats,
    OrderStatus,
    can_transition,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Store Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class OrderStore(Protocol):
    async def insert(self, order: Order) -> Result[Order, StoreError]:
        ...

    async def get(self, order_id: str) -> Result[Order | None, StoreError]:
        ...

    async def compare_and_set_status(
        self,
        order_id: str,
        expected: OrderStatus,
        new: OrderStatus,
    ) -> Result[Order | None, StoreError]:
        """
        Atomically move ``expected → new``.

        Returns Ok(None) if the order is missing or not in ``expected``.
        """
        ...

    async def list_by(
        self,
        *,
        buyer_id: str | None = None,
        seller_id: str | None = None,
        status: OrderStatus | None = None,
    ) -> Result[list[Order], StoreError]:
        """Newest first."""
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Store — For Testing
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryOrderStore:
    def __init__(self) -> None:
        self._orders: dict[str, Order] = {}
        self._lock = asyncio.Lock()

    async def insert(self, order: Order) -> Result[Order, StoreError]:
        async with self._lock:
            if order.id in self._orders:
                return Error(StoreError(f"Duplicate order id: {order.id}"))
            self._orders[order.id] = order
            return Ok(order)

    async def get(self, order_id: str) -> Result[Order | None, StoreError]:
        async with self._lock:
            return Ok(self._orders.get(order_id))

    async def compare_and_set_status(
        self,
        order_id: str,
        expected: OrderStatus,
        new: OrderStatus,
    ) -> Result[Order | None, StoreError]:
        async with self._lock:
            order = self._orders.get(order_id)
            if order is None or order.status is not expected:
                return Ok(None)
            updated = replace(order, status=new, updated_at=utcnow())
            self._orders[order_id] = updated
            return Ok(updated)

    async def list_by(
        self,
        *,
        buyer_id: str | None = None,
        seller_id: str | None = None,
        status: OrderStatus | None = None,
    ) -> Result[list[Order], StoreError]:
        async with self._lock:
            orders = [
                o
                for o in self._orders.values()
                if (buyer_id is None or o.buyer_id == buyer_id)
                and (seller_id is None or o.seller_id == seller_id)
                and (status is None or o.status is status)
            ]
        orders.sort(key=lambda o: o.created_at, reverse=True)
        return Ok(orders)


# ═══════════════════════════════════════════════════════════════════════════════
# Ledger
# ═══════════════════════════════════════════════════════════════════════════════


class OrderLedger:
    """
    Order records and legal status changes.

    Legal edges: pending→confirmed, pending→cancelled, confirmed→shipped,
    shipped→delivered. Everything else is InvalidTransition and leaves the
    order untouched.
    """

    def __init__(self, store: OrderStore) -> None:
        self._store = store

    async def create_order(self, new: NewOrder) -> Result[Order, StoreError]:
        now = utcnow()
        order = Order(
            id=new_id("ord"),
            item_id=new.item_id,
            buyer_id=new.buyer_id,
            seller_id=new.seller_id,
            amount_cents=new.amount_cents,
            quantity=new.quantity,
            status=OrderStatus.PENDING,
            shipping=new.shipping,
            created_at=now,
            updated_at=now,
        )
        return await self._store.insert(order)

    async def get_order(self, order_id: str) -> Result[Order | None, StoreError]:
        return await self._store.get(order_id)

    async def update_status(
        self,
        order_id: str,
        new_status: OrderStatus,
        *,
        expected: OrderStatus | None = None,
    ) -> Result[Order, InvalidTransition | NotFound | StoreError]:
        """
        Move an order to ``new_status`` if the transition table allows it.

        ``expected`` pins the status the caller observed; if the order moved
        in the meantime the call fails instead of applying a stale decision.
        """
        match await self._store.get(order_id):
            case Error(e):
                return Error(e)
            case Ok(None):
                return Error(NotFound("Order", order_id))
            case Ok(current):
                pass

        if expected is not None and current.status is not expected:
            return Error(InvalidTransition(order_id, current.status.value, new_status.value))
        if not can_transition(current.status, new_status):
            return Error(InvalidTransition(order_id, current.status.value, new_status.value))

        match await self._store.compare_and_set_status(order_id, current.status, new_status):
            case Error(e):
                return Error(e)
            case Ok(None):
                # Lost a race; report what the order is now
                match await self._store.get(order_id):
                    case Ok(latest) if latest is not None:
                        actual = latest.status.value
                    case _:
                        actual = "unknown"
                return Error(InvalidTransition(order_id, actual, new_status.value))
            case Ok(updated):
                logger.info(
                    "Order %s: %s → %s", order_id, current.status.value, new_status.value
                )
                return Ok(updated)


    async def get_orders_by_buyer(self, buyer_id: str) -> Result[list[Order], StoreError]:
        return await self._store.list_by(buyer_id=buyer_id)

    async def get_orders_by_seller(self, seller_id: str) -> Result[list[Order], StoreError]:
        return await self._store.list_by(seller_id=seller_id)

    async def seller_stats(self, seller_id: str) -> Result[OrderStats, StoreError]:
        match await self._store.list_by(seller_id=seller_id):
            case Ok(orders):
                return Ok(OrderStats.of(orders))
            case Error(e):
                return Error(e)

    async def earnings_history(self, seller_id: str) -> Result[list[Order], StoreError]:
        """Delivered sales, newest first."""
        return await self._store.list_by(seller_id=seller_id, status=OrderStatus.DELIVERED)


__all__ = ("OrderStore", "MemoryOrderStore", "OrderLedger")
