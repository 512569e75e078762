"""
Attempt store — typed storage protocol.

A checkout attempt key lets a buyer retry ``place_order`` after a dropped
response without paying twice. ``begin`` must be atomic: exactly one
caller gets Ok(True) for a given live key.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

from kungfu import Result, Ok, Error

from bazaar._types import utcnow
from bazaar.attempts._types import AttemptRecord, AttemptState
from bazaar.errors import StoreError


# ═══════════════════════════════════════════════════════════════════════════════
# Store Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class AttemptStore(Protocol):
    async def get(self, key: str) -> Result[AttemptRecord | None, StoreError]:
        """Get live record. Returns Ok(None) if missing or expired."""
        ...

    async def begin(
        self, key: str, buyer_id: str, ttl: timedelta | None
    ) -> Result[bool, StoreError]:
        """
        Atomically create a PENDING record.

        Returns Ok(True) if created, Ok(False) if a live record exists.
        """
        ...

    async def complete(self, key: str, order_id: str) -> Result[None, StoreError]:
        ...

    async def fail(
        self, key: str, error_code: str, error_message: str
    ) -> Result[None, StoreError]:
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Store — For Testing
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class _StoredAttempt:
    """Internal mutable record for MemoryAttemptStore."""

    key: str
    buyer_id: str
    state: AttemptState
    created_at: datetime
    expires_at: datetime | None
    order_id: str | None = None
    error_code: str | None = None
    error_message: str | None = None

    def expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now > self.expires_at

    def to_record(self) -> AttemptRecord:
        return AttemptRecord(
            key=self.key,
            buyer_id=self.buyer_id,
            state=self.state,
            order_id=self.order_id,
            error_code=self.error_code,
            error_message=self.error_message,
            created_at=self.created_at,
            expires_at=self.expires_at,
        )


class MemoryAttemptStore:
    """
    In-memory attempt store.

    Note: single instance / tests only. No distributed lock and nothing
    survives a restart.
    """

    def __init__(self) -> None:
        self._records: dict[str, _StoredAttempt] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Result[AttemptRecord | None, StoreError]:
        async with self._lock:
            record = self._records.get(key)
            if record is None:
                return Ok(None)
            if record.expired(utcnow()):
                del self._records[key]
                return Ok(None)
            return Ok(record.to_record())

    async def begin(
        self, key: str, buyer_id: str, ttl: timedelta | None
    ) -> Result[bool, StoreError]:
        async with self._lock:
            now = utcnow()
            existing = self._records.get(key)
            if existing is not None:
                if existing.expired(now):
                    del self._records[key]
                else:
                    return Ok(False)

            self._records[key] = _StoredAttempt(
                key=key,
                buyer_id=buyer_id,
                state=AttemptState.PENDING,
                created_at=now,
                expires_at=now + ttl if ttl else None,
            )
            return Ok(True)

    async def complete(self, key: str, order_id: str) -> Result[None, StoreError]:
        async with self._lock:
            existing = self._records.get(key)
            if existing is None:
                return Error(StoreError(f"No pending attempt for key: {key}"))
            existing.state = AttemptState.COMPLETED
            existing.order_id = order_id
            return Ok(None)

    async def fail(
        self, key: str, error_code: str, error_message: str
    ) -> Result[None, StoreError]:
        async with self._lock:
            existing = self._records.get(key)
            if existing is None:
                return Error(StoreError(f"No pending attempt for key: {key}"))
            existing.state = AttemptState.FAILED
            existing.error_code = error_code
            existing.error_message = error_message
            return Ok(None)


__all__ = ("AttemptStore", "MemoryAttemptStore")
