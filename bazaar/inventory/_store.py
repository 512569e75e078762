"""
Inventory store — typed storage protocol.

InventoryStore is the one correctness-critical primitive of checkout:
``conditional_decrement`` must be atomic (compare-and-decrement).
All methods return Result for explicit error handling.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any, Protocol

from kungfu import Result, Ok, Error

from bazaar._types import utcnow
from bazaar.errors import StoreError
from bazaar.inventory._types import Item

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Protocols
# ═══════════════════════════════════════════════════════════════════════════════


class InventoryStore(Protocol):
    """
    The three operations checkout depends on.

    Note: ``conditional_decrement`` returns Ok(False) when stock at commit
    time is below ``quantity`` (or the item is gone), never a partial
    decrement. ``increment_stock`` on a deleted item is a no-op.
    """

    async def get_item(self, item_id: str) -> Result[Item | None, StoreError]:
        ...

    async def conditional_decrement(
        self, item_id: str, quantity: int
    ) -> Result[bool, StoreError]:
        ...

    async def increment_stock(
        self, item_id: str, quantity: int
    ) -> Result[None, StoreError]:
        ...


class CatalogStore(InventoryStore, Protocol):
    """Inventory plus seller-side listing management."""

    async def add_item(self, item: Item) -> Result[Item, StoreError]:
        ...

    async def update_item(
        self, item_id: str, changes: Mapping[str, Any]
    ) -> Result[Item | None, StoreError]:
        """Apply field changes. Returns Ok(None) if the item does not exist."""
        ...

    async def delete_item(self, item_id: str) -> Result[bool, StoreError]:
        ...

    async def list_items(
        self,
        *,
        seller_id: str | None = None,
        category: str | None = None,
    ) -> Result[list[Item], StoreError]:
        """Newest first, filtered by equality on the given fields."""
        ...


class VersionedStore(Protocol):
    """
    Stores that cannot decrement conditionally but can compare-and-set
    on a version column.
    """

    async def read_versioned(
        self, item_id: str
    ) -> Result[tuple[int, int] | None, StoreError]:
        """Returns Ok((stock, version)) or Ok(None) if missing."""
        ...

    async def compare_and_set_stock(
        self, item_id: str, expected_version: int, new_stock: int
    ) -> Result[bool, StoreError]:
        """Write ``new_stock`` only if version is unchanged. Bumps version."""
        ...


class VersionedInventory(InventoryStore, VersionedStore, Protocol):
    pass


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Store — For Testing
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class _StoredItem:
    """Internal mutable record for MemoryInventory."""

    item: Item
    version: int = 0


class MemoryInventory:
    """
    In-memory inventory.

    Note: single process only. The asyncio lock is the atomicity guarantee.
    """

    def __init__(self, items: list[Item] | None = None) -> None:
        self._items: dict[str, _StoredItem] = {i.id: _StoredItem(i) for i in items or []}
        self._lock = asyncio.Lock()

    async def get_item(self, item_id: str) -> Result[Item | None, StoreError]:
        async with self._lock:
            stored = self._items.get(item_id)
            return Ok(stored.item if stored else None)

    async def conditional_decrement(
        self, item_id: str, quantity: int
    ) -> Result[bool, StoreError]:
        async with self._lock:
            stored = self._items.get(item_id)
            if stored is None or stored.item.stock < quantity:
                return Ok(False)
            self._set_stock(stored, stored.item.stock - quantity)
            return Ok(True)

    async def increment_stock(
        self, item_id: str, quantity: int
    ) -> Result[None, StoreError]:
        async with self._lock:
            stored = self._items.get(item_id)
            if stored is None:
                logger.warning("Stock increment for missing item %s ignored", item_id)
                return Ok(None)
            self._set_stock(stored, stored.item.stock + quantity)
            return Ok(None)

    async def read_versioned(
        self, item_id: str
    ) -> Result[tuple[int, int] | None, StoreError]:
        async with self._lock:
            stored = self._items.get(item_id)
            if stored is None:
                return Ok(None)
            return Ok((stored.item.stock, stored.version))

    async def compare_and_set_stock(
        self, item_id: str, expected_version: int, new_stock: int
    ) -> Result[bool, StoreError]:
        if new_stock < 0:
            return Error(StoreError(f"Refusing negative stock for {item_id}"))
        async with self._lock:
            stored = self._items.get(item_id)
            if stored is None or stored.version != expected_version:
                return Ok(False)
            self._set_stock(stored, new_stock)
            return Ok(True)

    async def add_item(self, item: Item) -> Result[Item, StoreError]:
        async with self._lock:
            if item.id in self._items:
                return Error(StoreError(f"Duplicate item id: {item.id}"))
            self._items[item.id] = _StoredItem(item)
            return Ok(item)

    async def update_item(
        self, item_id: str, changes: Mapping[str, Any]
    ) -> Result[Item | None, StoreError]:
        async with self._lock:
            stored = self._items.get(item_id)
            if stored is None:
                return Ok(None)
            try:
                updated = replace(stored.item, **changes, updated_at=utcnow())
            except TypeError as e:
                return Error(StoreError(f"Failed to update: {e}", e))
            if "stock" in changes:
                stored.version += 1
            stored.item = updated
            return Ok(updated)

    async def delete_item(self, item_id: str) -> Result[bool, StoreError]:
        async with self._lock:
            return Ok(self._items.pop(item_id, None) is not None)

    async def list_items(
        self,
        *,
        seller_id: str | None = None,
        category: str | None = None,
    ) -> Result[list[Item], StoreError]:
        async with self._lock:
            items = [
                s.item
                for s in self._items.values()
                if (seller_id is None or s.item.seller_id == seller_id)
                and (category is None or s.item.category == category)
            ]
        items.sort(key=lambda i: i.created_at, reverse=True)
        return Ok(items)

    @staticmethod
    def _set_stock(stored: _StoredItem, stock: int) -> None:
        stored.item = replace(stored.item, stock=stock, updated_at=utcnow())
        stored.version += 1


# ═══════════════════════════════════════════════════════════════════════════════
# Optimistic Inventory — conditional decrement via version check
# ═══════════════════════════════════════════════════════════════════════════════


class OptimisticInventory:
    """
    Emulates ``conditional_decrement`` on a store that only offers
    compare-and-set on a version.

    Read (stock, version) → check stock → CAS → on version conflict retry,
    at most ``attempts`` times, then report Ok(False) like a lost race.

    Example:
        inventory = OptimisticInventory(SQLAlchemyInventory(sf), attempts=3)
    """

    def __init__(self, store: VersionedInventory, *, attempts: int = 3) -> None:
        if attempts < 1:
            raise ValueError("attempts must be >= 1")
        self._store = store
        self._attempts = attempts

    async def get_item(self, item_id: str) -> Result[Item | None, StoreError]:
        return await self._store.get_item(item_id)

    async def increment_stock(
        self, item_id: str, quantity: int
    ) -> Result[None, StoreError]:
        # Increasing stock cannot break non-negativity; no version check
        return await self._store.increment_stock(item_id, quantity)

    async def conditional_decrement(
        self, item_id: str, quantity: int
    ) -> Result[bool, StoreError]:
        for attempt in range(1, self._attempts + 1):
            read = await self._store.read_versioned(item_id)
            match read:
                case Error(e):
                    return Error(e)
                case Ok(None):
                    return Ok(False)
                case Ok((stock, version)):
                    if stock < quantity:
                        return Ok(False)

                    swapped = await self._store.compare_and_set_stock(
                        item_id, version, stock - quantity
                    )
                    match swapped:
                        case Error(e):
                            return Error(e)
                        case Ok(True):
                            return Ok(True)
                        case Ok(False):
                            logger.debug(
                                "Version conflict on %s (attempt %d/%d)",
                                item_id,
                                attempt,
                                self._attempts,
                            )

        logger.warning(
            "Gave up decrementing %s after %d version conflicts", item_id, self._attempts
        )
        return Ok(False)


__all__ = (
    "InventoryStore",
    "CatalogStore",
    "VersionedStore",
    "VersionedInventory",
    "MemoryInventory",
    "OptimisticInventory",
)
