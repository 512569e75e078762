"""
SQLAlchemy order store.

Status changes are a guarded UPDATE on the status column:

    UPDATE orders SET status = :new WHERE id = :id AND status = :expected
"""

from __future__ import annotations

from typing import Any, cast

from sqlalchemy import select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kungfu import Result, Ok, Error

from bazaar._types import utcnow
from bazaar.db import OrderTable
from bazaar.errors import StoreError
from bazaar.orders._types import Order, OrderStatus, ShippingInfo


def _to_order(row: OrderTable) -> Order:
    return Order(
        id=row.id,
        item_id=row.item_id,
        buyer_id=row.buyer_id,
        seller_id=row.seller_id,
        amount_cents=row.amount_cents,
        quantity=row.quantity,
        status=OrderStatus(row.status),
        shipping=ShippingInfo.from_dict(row.shipping) if row.shipping else None,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class SQLAlchemyOrderStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def insert(self, order: Order) -> Result[Order, StoreError]:
        try:
            async with self._session_factory() as session:
                session.add(
                    OrderTable(
                        id=order.id,
                        item_id=order.item_id,
                        buyer_id=order.buyer_id,
                        seller_id=order.seller_id,
                        amount_cents=order.amount_cents,
                        quantity=order.quantity,
                        status=order.status.value,
                        shipping=order.shipping.to_dict() if order.shipping else None,
                        created_at=order.created_at,
                        updated_at=order.updated_at,
                    )
                )
                await session.commit()
                return Ok(order)
        except Exception as e:
            return Error(StoreError(f"Failed to create order: {e}", e))

    async def get(self, order_id: str) -> Result[Order | None, StoreError]:
        try:
            async with self._session_factory() as session:
                row = await session.get(OrderTable, order_id)
                return Ok(_to_order(row) if row is not None else None)
        except Exception as e:
            return Error(StoreError(f"Failed to get order: {e}", e))

    async def compare_and_set_status(
        self,
        order_id: str,
        expected: OrderStatus,
        new: OrderStatus,
    ) -> Result[Order | None, StoreError]:
        try:
            async with self._session_factory() as session:
                stmt = (
                    update(OrderTable)
                    .where(OrderTable.id == order_id, OrderTable.status == expected.value)
                    .values(status=new.value, updated_at=utcnow())
                )
                cursor = cast(CursorResult[Any], await session.execute(stmt))
                await session.commit()
                if cursor.rowcount != 1:
                    return Ok(None)
                row = await session.get(OrderTable, order_id, populate_existing=True)
                return Ok(_to_order(row) if row is not None else None)
        except Exception as e:
            return Error(StoreError(f"Failed to update order status: {e}", e))

    async def list_by(
        self,
        *,
        buyer_id: str | None = None,
        seller_id: str | None = None,
        status: OrderStatus | None = None,
    ) -> Result[list[Order], StoreError]:
        try:
            async with self._session_factory() as session:
                stmt = select(OrderTable)
                if buyer_id is not None:
                    stmt = stmt.where(OrderTable.buyer_id == buyer_id)
                if seller_id is not None:
                    stmt = stmt.where(OrderTable.seller_id == seller_id)
                if status is not None:
                    stmt = stmt.where(OrderTable.status == status.value)
                stmt = stmt.order_by(OrderTable.created_at.desc())
                rows = (await session.execute(stmt)).scalars().all()
                return Ok([_to_order(r) for r in rows])
        except Exception as e:
            return Error(StoreError(f"Failed to list orders: {e}", e))


__all__ = ("SQLAlchemyOrderStore",)
