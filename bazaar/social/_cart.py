"""
Cart — one line per (user, item); adding again increments the quantity.
"""

from __future__ import annotations

from typing import Any, cast

from sqlalchemy import delete, func, select
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kungfu import Result, Ok, Error

from bazaar._types import new_id, utcnow
from bazaar.db import CartLineTable, upsert_insert
from bazaar.errors import StoreError, ValidationError
from bazaar.social._types import CartLine
from bazaar.validation import validate_quantity


def _to_line(row: CartLineTable) -> CartLine:
    return CartLine(
        id=row.id,
        user_id=row.user_id,
        item_id=row.item_id,
        quantity=row.quantity,
        created_at=row.created_at,
    )


class Cart:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def add(
        self, user_id: str, item_id: str, quantity: int = 1
    ) -> Result[CartLine, ValidationError | StoreError]:
        match validate_quantity(quantity):
            case Error(e):
                return Error(e)
        try:
            async with self._session_factory() as session:
                insert = upsert_insert(session)
                stmt = insert(CartLineTable).values(
                    id=new_id("crt"),
                    user_id=user_id,
                    item_id=item_id,
                    quantity=quantity,
                    created_at=utcnow(),
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=["user_id", "item_id"],
                    set_={"quantity": CartLineTable.quantity + stmt.excluded.quantity},
                )
                await session.execute(stmt)
                await session.commit()
                row = (
                    await session.execute(
                        select(CartLineTable).where(
                            CartLineTable.user_id == user_id,
                            CartLineTable.item_id == item_id,
                        )
                    )
                ).scalar_one()
                return Ok(_to_line(row))
        except Exception as e:
            return Error(StoreError(f"Failed to add to cart: {e}", e))

    async def lines(self, user_id: str) -> Result[list[CartLine], StoreError]:
        """Newest first."""
        try:
            async with self._session_factory() as session:
                stmt = (
                    select(CartLineTable)
                    .where(CartLineTable.user_id == user_id)
                    .order_by(CartLineTable.created_at.desc())
                )
                rows = (await session.execute(stmt)).scalars().all()
                return Ok([_to_line(r) for r in rows])
        except Exception as e:
            return Error(StoreError(f"Failed to read cart: {e}", e))

    async def set_quantity(
        self, user_id: str, item_id: str, quantity: int
    ) -> Result[CartLine | None, ValidationError | StoreError]:
        """Zero or less removes the line and returns Ok(None)."""
        if isinstance(quantity, int) and quantity <= 0:
            match await self.remove(user_id, item_id):
                case Error(e):
                    return Error(e)
                case Ok(_):
                    return Ok(None)
        match validate_quantity(quantity):
            case Error(e):
                return Error(e)
        try:
            async with self._session_factory() as session:
                row = (
                    await session.execute(
                        select(CartLineTable).where(
                            CartLineTable.user_id == user_id,
                            CartLineTable.item_id == item_id,
                        )
                    )
                ).scalar_one_or_none()
                if row is None:
                    return Ok(None)
                row.quantity = quantity
                await session.commit()
                return Ok(_to_line(row))
        except Exception as e:
            return Error(StoreError(f"Failed to update cart: {e}", e))

    async def remove(self, user_id: str, item_id: str) -> Result[bool, StoreError]:
        return await self._delete(
            CartLineTable.user_id == user_id, CartLineTable.item_id == item_id
        )

    async def clear(self, user_id: str) -> Result[bool, StoreError]:
        return await self._delete(CartLineTable.user_id == user_id)

    async def count(self, user_id: str) -> Result[int, StoreError]:
        """Total units across all lines."""
        try:
            async with self._session_factory() as session:
                stmt = select(func.coalesce(func.sum(CartLineTable.quantity), 0)).where(
                    CartLineTable.user_id == user_id
                )
                return Ok(int((await session.execute(stmt)).scalar_one()))
        except Exception as e:
            return Error(StoreError(f"Failed to count cart: {e}", e))

    async def _delete(self, *where: Any) -> Result[bool, StoreError]:
        try:
            async with self._session_factory() as session:
                cursor = cast(
                    CursorResult[Any],
                    await session.execute(delete(CartLineTable).where(*where)),
                )
                await session.commit()
                return Ok(cursor.rowcount > 0)
        except Exception as e:
            return Error(StoreError(f"Failed to remove from cart: {e}", e))


__all__ = ("Cart",)
