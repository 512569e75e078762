"""
Follows — directed user → user edges. Nobody follows themselves.
"""

from __future__ import annotations

from typing import Any, cast

from sqlalchemy import delete, func, select
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kungfu import Result, Ok, Error

from bazaar._types import new_id, utcnow
from bazaar.db import FollowTable, upsert_insert
from bazaar.errors import StoreError, ValidationError
from bazaar.social._types import FollowCounts


class Follows:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def follow(
        self, follower_id: str, following_id: str
    ) -> Result[bool, ValidationError | StoreError]:
        """Ok(False) if the edge already existed."""
        if follower_id == following_id:
            return Error(ValidationError("following_id", "you cannot follow yourself"))
        try:
            async with self._session_factory() as session:
                insert = upsert_insert(session)
                stmt = (
                    insert(FollowTable)
                    .values(
                        id=new_id("fol"),
                        follower_id=follower_id,
                        following_id=following_id,
                        created_at=utcnow(),
                    )
                    .on_conflict_do_nothing(index_elements=["follower_id", "following_id"])
                )
                cursor = cast(CursorResult[Any], await session.execute(stmt))
                await session.commit()
                return Ok(cursor.rowcount > 0)
        except Exception as e:
            return Error(StoreError(f"Failed to follow: {e}", e))

    async def unfollow(self, follower_id: str, following_id: str) -> Result[bool, StoreError]:
        try:
            async with self._session_factory() as session:
                stmt = delete(FollowTable).where(
                    FollowTable.follower_id == follower_id,
                    FollowTable.following_id == following_id,
                )
                cursor = cast(CursorResult[Any], await session.execute(stmt))
                await session.commit()
                return Ok(cursor.rowcount > 0)
        except Exception as e:
            return Error(StoreError(f"Failed to unfollow: {e}", e))

    async def is_following(
        self, follower_id: str, following_id: str
    ) -> Result[bool, StoreError]:
        try:
            async with self._session_factory() as session:
                stmt = select(FollowTable.id).where(
                    FollowTable.follower_id == follower_id,
                    FollowTable.following_id == following_id,
                )
                return Ok((await session.execute(stmt)).first() is not None)
        except Exception as e:
            return Error(StoreError(f"Failed to read follow: {e}", e))

    async def toggle(
        self, follower_id: str, following_id: str
    ) -> Result[bool, ValidationError | StoreError]:
        """Flip and return the new state."""
        match await self.is_following(follower_id, following_id):
            case Error(e):
                return Error(e)
            case Ok(True):
                match await self.unfollow(follower_id, following_id):
                    case Error(e):
                        return Error(e)
                    case Ok(_):
                        return Ok(False)
            case Ok(False):
                match await self.follow(follower_id, following_id):
                    case Error(e):
                        return Error(e)
                    case Ok(_):
                        return Ok(True)

    async def followers(self, user_id: str) -> Result[list[str], StoreError]:
        """Ids following ``user_id``, newest first."""
        return await self._ids(FollowTable.follower_id, FollowTable.following_id == user_id)

    async def following(self, user_id: str) -> Result[list[str], StoreError]:
        """Ids ``user_id`` follows, newest first."""
        return await self._ids(FollowTable.following_id, FollowTable.follower_id == user_id)

    async def counts(self, user_id: str) -> Result[FollowCounts, StoreError]:
        try:
            async with self._session_factory() as session:
                count = select(func.count()).select_from(FollowTable)
                followers = (
                    await session.execute(count.where(FollowTable.following_id == user_id))
                ).scalar_one()
                following = (
                    await session.execute(count.where(FollowTable.follower_id == user_id))
                ).scalar_one()
                return Ok(FollowCounts(followers=followers, following=following))
        except Exception as e:
            return Error(StoreError(f"Failed to count follows: {e}", e))

    async def _ids(self, column: Any, where: Any) -> Result[list[str], StoreError]:
        try:
            async with self._session_factory() as session:
                stmt = select(column).where(where).order_by(FollowTable.created_at.desc())
                return Ok(list((await session.execute(stmt)).scalars().all()))
        except Exception as e:
            return Error(StoreError(f"Failed to list follows: {e}", e))


__all__ = ("Follows",)
