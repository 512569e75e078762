"""
Favorites — one row per (user, item).
"""

from __future__ import annotations

from typing import Any, cast

from sqlalchemy import delete, select
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kungfu import Result, Ok, Error

from bazaar._types import new_id, utcnow
from bazaar.db import FavoriteTable, upsert_insert
from bazaar.errors import StoreError


class Favorites:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def add(self, user_id: str, item_id: str) -> Result[bool, StoreError]:
        """Ok(False) if it was already a favorite."""
        try:
            async with self._session_factory() as session:
                insert = upsert_insert(session)
                stmt = (
                    insert(FavoriteTable)
                    .values(
                        id=new_id("fav"),
                        user_id=user_id,
                        item_id=item_id,
                        created_at=utcnow(),
                    )
                    .on_conflict_do_nothing(index_elements=["user_id", "item_id"])
                )
                cursor = cast(CursorResult[Any], await session.execute(stmt))
                await session.commit()
                return Ok(cursor.rowcount > 0)
        except Exception as e:
            return Error(StoreError(f"Failed to add favorite: {e}", e))

    async def remove(self, user_id: str, item_id: str) -> Result[bool, StoreError]:
        try:
            async with self._session_factory() as session:
                stmt = delete(FavoriteTable).where(
                    FavoriteTable.user_id == user_id, FavoriteTable.item_id == item_id
                )
                cursor = cast(CursorResult[Any], await session.execute(stmt))
                await session.commit()
                return Ok(cursor.rowcount > 0)
        except Exception as e:
            return Error(StoreError(f"Failed to remove favorite: {e}", e))

    async def is_favorite(self, user_id: str, item_id: str) -> Result[bool, StoreError]:
        try:
            async with self._session_factory() as session:
                stmt = select(FavoriteTable.id).where(
                    FavoriteTable.user_id == user_id, FavoriteTable.item_id == item_id
                )
                return Ok((await session.execute(stmt)).first() is not None)
        except Exception as e:
            return Error(StoreError(f"Failed to read favorite: {e}", e))

    async def toggle(self, user_id: str, item_id: str) -> Result[bool, StoreError]:
        """Flip and return the new state."""
        match await self.is_favorite(user_id, item_id):
            case Error(e):
                return Error(e)
            case Ok(True):
                match await self.remove(user_id, item_id):
                    case Error(e):
                        return Error(e)
                    case Ok(_):
                        return Ok(False)
            case Ok(False):
                match await self.add(user_id, item_id):
                    case Error(e):
                        return Error(e)
                    case Ok(_):
                        return Ok(True)

    async def item_ids(self, user_id: str) -> Result[list[str], StoreError]:
        """Newest first."""
        try:
            async with self._session_factory() as session:
                stmt = (
                    select(FavoriteTable.item_id)
                    .where(FavoriteTable.user_id == user_id)
                    .order_by(FavoriteTable.created_at.desc())
                )
                return Ok(list((await session.execute(stmt)).scalars().all()))
        except Exception as e:
            return Error(StoreError(f"Failed to list favorites: {e}", e))


__all__ = ("Favorites",)
