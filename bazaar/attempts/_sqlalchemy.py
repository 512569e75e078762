"""
SQLAlchemy attempt store — the ``checkout_attempts`` table.

``begin`` is ``INSERT ... ON CONFLICT DO NOTHING`` on the key; rowcount
tells whether this caller created the attempt. Expired rows are cleared
first so a key can be reused after its TTL.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, cast

from sqlalchemy import delete, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kungfu import Result, Ok, Error

from bazaar._types import utcnow
from bazaar.attempts._types import AttemptRecord, AttemptState
from bazaar.db import AttemptTable, upsert_insert
from bazaar.errors import StoreError


def _to_record(row: AttemptTable) -> AttemptRecord:
    return AttemptRecord(
        key=row.key,
        buyer_id=row.buyer_id,
        state=AttemptState(row.state),
        order_id=row.order_id,
        error_code=row.error_code,
        error_message=row.error_message,
        created_at=row.created_at,
        expires_at=row.expires_at,
    )


class SQLAlchemyAttemptStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, key: str) -> Result[AttemptRecord | None, StoreError]:
        try:
            async with self._session_factory() as session:
                row = await session.get(AttemptTable, key)
                if row is None:
                    return Ok(None)
                record = _to_record(row)
                return Ok(None if record.is_expired else record)
        except Exception as e:
            return Error(StoreError(f"Failed to get attempt: {e}", e))

    async def begin(
        self, key: str, buyer_id: str, ttl: timedelta | None
    ) -> Result[bool, StoreError]:
        try:
            async with self._session_factory() as session:
                now = utcnow()
                await session.execute(
                    delete(AttemptTable).where(
                        AttemptTable.key == key,
                        AttemptTable.expires_at.is_not(None),
                        AttemptTable.expires_at < now,
                    )
                )
                insert = upsert_insert(session)
                stmt = (
                    insert(AttemptTable)
                    .values(
                        key=key,
                        buyer_id=buyer_id,
                        state=AttemptState.PENDING.value,
                        created_at=now,
                        expires_at=now + ttl if ttl else None,
                    )
                    .on_conflict_do_nothing(index_elements=["key"])
                )
                cursor = cast(CursorResult[Any], await session.execute(stmt))
                await session.commit()
                return Ok(cursor.rowcount > 0)
        except Exception as e:
            return Error(StoreError(f"Failed to begin attempt: {e}", e))

    async def complete(self, key: str, order_id: str) -> Result[None, StoreError]:
        return await self._finish(
            key, state=AttemptState.COMPLETED.value, order_id=order_id
        )

    async def fail(
        self, key: str, error_code: str, error_message: str
    ) -> Result[None, StoreError]:
        return await self._finish(
            key,
            state=AttemptState.FAILED.value,
            error_code=error_code,
            error_message=error_message,
        )

    async def _finish(self, key: str, **values: Any) -> Result[None, StoreError]:
        try:
            async with self._session_factory() as session:
                cursor = cast(
                    CursorResult[Any],
                    await session.execute(
                        update(AttemptTable).where(AttemptTable.key == key).values(**values)
                    ),
                )
                await session.commit()
                if cursor.rowcount == 0:
                    return Error(StoreError(f"No pending attempt for key: {key}"))
                return Ok(None)
        except Exception as e:
            return Error(StoreError(f"Failed to finish attempt: {e}", e))


__all__ = ("SQLAlchemyAttemptStore",)
