"""
SQLAlchemy inventory — the items table behind checkout.

``conditional_decrement`` is a single guarded UPDATE:

    UPDATE items
       SET stock = stock - :q, version = version + 1
     WHERE id = :id AND stock >= :q

so the database decides who wins a race; rowcount tells us.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, cast

from sqlalchemy import select, update, delete
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kungfu import Result, Ok, Error

from bazaar._types import utcnow
from bazaar.db import ItemTable
from bazaar.errors import StoreError
from bazaar.inventory._types import Item

_EDITABLE = frozenset({"title", "description", "price_cents", "stock", "category", "image_url"})


def _to_item(row: ItemTable) -> Item:
    return Item(
        id=row.id,
        seller_id=row.seller_id,
        title=row.title,
        description=row.description,
        price_cents=row.price_cents,
        stock=row.stock,
        category=row.category,
        image_url=row.image_url,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class SQLAlchemyInventory:
    """
    Items table store. Implements CatalogStore and VersionedStore.

    Example:
        session_factory, engine = await create_database()
        inventory = SQLAlchemyInventory(session_factory)
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_item(self, item_id: str) -> Result[Item | None, StoreError]:
        try:
            async with self._session_factory() as session:
                row = await session.get(ItemTable, item_id)
                return Ok(_to_item(row) if row is not None else None)
        except Exception as e:
            return Error(StoreError(f"Failed to get item: {e}", e))

    async def conditional_decrement(
        self, item_id: str, quantity: int
    ) -> Result[bool, StoreError]:
        try:
            async with self._session_factory() as session:
                stmt = (
                    update(ItemTable)
                    .where(ItemTable.id == item_id, ItemTable.stock >= quantity)
                    .values(
                        stock=ItemTable.stock - quantity,
                        version=ItemTable.version + 1,
                        updated_at=utcnow(),
                    )
                )
                cursor = cast(CursorResult[Any], await session.execute(stmt))
                await session.commit()
                return Ok(cursor.rowcount == 1)
        except Exception as e:
            return Error(StoreError(f"Failed to decrement stock: {e}", e))

    async def increment_stock(
        self, item_id: str, quantity: int
    ) -> Result[None, StoreError]:
        try:
            async with self._session_factory() as session:
                stmt = (
                    update(ItemTable)
                    .where(ItemTable.id == item_id)
                    .values(
                        stock=ItemTable.stock + quantity,
                        version=ItemTable.version + 1,
                        updated_at=utcnow(),
                    )
                )
                await session.execute(stmt)
                await session.commit()
                return Ok(None)
        except Exception as e:
            return Error(StoreError(f"Failed to increment stock: {e}", e))

    async def read_versioned(
        self, item_id: str
    ) -> Result[tuple[int, int] | None, StoreError]:
        try:
            async with self._session_factory() as session:
                stmt = select(ItemTable.stock, ItemTable.version).where(ItemTable.id == item_id)
                row = (await session.execute(stmt)).one_or_none()
                if row is None:
                    return Ok(None)
                return Ok((row.stock, row.version))
        except Exception as e:
            return Error(StoreError(f"Failed to read stock: {e}", e))

    async def compare_and_set_stock(
        self, item_id: str, expected_version: int, new_stock: int
    ) -> Result[bool, StoreError]:
        try:
            async with self._session_factory() as session:
                stmt = (
                    update(ItemTable)
                    .where(ItemTable.id == item_id, ItemTable.version == expected_version)
                    .values(stock=new_stock, version=expected_version + 1, updated_at=utcnow())
                )
                cursor = cast(CursorResult[Any], await session.execute(stmt))
                await session.commit()
                return Ok(cursor.rowcount == 1)
        except Exception as e:
            return Error(StoreError(f"Failed to swap stock: {e}", e))

    async def add_item(self, item: Item) -> Result[Item, StoreError]:
        try:
            async with self._session_factory() as session:
                session.add(
                    ItemTable(
                        id=item.id,
                        seller_id=item.seller_id,
                        title=item.title,
                        description=item.description,
                        price_cents=item.price_cents,
                        stock=item.stock,
                        category=item.category,
                        image_url=item.image_url,
                        version=0,
                        created_at=item.created_at,
                        updated_at=item.updated_at,
                    )
                )
                await session.commit()
                return Ok(item)
        except Exception as e:
            return Error(StoreError(f"Failed to add item: {e}", e))

    async def update_item(
        self, item_id: str, changes: Mapping[str, Any]
    ) -> Result[Item | None, StoreError]:
        unknown = set(changes) - _EDITABLE
        if unknown:
            return Error(StoreError(f"Not editable: {', '.join(sorted(unknown))}"))
        try:
            async with self._session_factory() as session:
                row = await session.get(ItemTable, item_id)
                if row is None:
                    return Ok(None)
                for name, value in changes.items():
                    setattr(row, name, value)
                if "stock" in changes:
                    row.version += 1
                row.updated_at = utcnow()
                await session.commit()
                return Ok(_to_item(row))
        except Exception as e:
            return Error(StoreError(f"Failed to update item: {e}", e))

    async def delete_item(self, item_id: str) -> Result[bool, StoreError]:
        try:
            async with self._session_factory() as session:
                cursor = cast(
                    CursorResult[Any],
                    await session.execute(delete(ItemTable).where(ItemTable.id == item_id)),
                )
                await session.commit()
                return Ok(cursor.rowcount > 0)
        except Exception as e:
            return Error(StoreError(f"Failed to delete item: {e}", e))

    async def list_items(
        self,
        *,
        seller_id: str | None = None,
        category: str | None = None,
    ) -> Result[list[Item], StoreError]:
        try:
            async with self._session_factory() as session:
                stmt = select(ItemTable)
                if seller_id is not None:
                    stmt = stmt.where(ItemTable.seller_id == seller_id)
                if category is not None:
                    stmt = stmt.where(ItemTable.category == category)
                stmt = stmt.order_by(ItemTable.created_at.desc())
                rows = (await session.execute(stmt)).scalars().all()
                return Ok([_to_item(r) for r in rows])
        except Exception as e:
            return Error(StoreError(f"Failed to list items: {e}", e))


__all__ = ("SQLAlchemyInventory",)
