"""
Inventory — item records and the stock primitives checkout relies on.

    from bazaar import inventory as V

    store = V.SQLAlchemyInventory(session_factory)
    ok = await store.conditional_decrement(item_id, 2)   # Ok(True) / Ok(False)

    # Store without compare-and-decrement? Emulate it:
    store = V.OptimisticInventory(versioned_store, attempts=3)
"""

from bazaar.inventory._types import Item, ListingDraft, ListingPatch
from bazaar.inventory._store import (
    InventoryStore,
    CatalogStore,
    VersionedStore,
    VersionedInventory,
    MemoryInventory,
    OptimisticInventory,
)
from bazaar.inventory._sqlalchemy import SQLAlchemyInventory

__all__ = (
    "Item",
    "ListingDraft",
    "ListingPatch",
    "InventoryStore",
    "CatalogStore",
    "VersionedStore",
    "VersionedInventory",
    "MemoryInventory",
    "OptimisticInventory",
    "SQLAlchemyInventory",
)
