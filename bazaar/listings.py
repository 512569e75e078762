"""
Listings — seller-side item management.

Every write is validated and sanitised first; only the seller who listed an
item may edit or delete it, and the price is fixed once listed so that
orders in flight are never charged a different amount than was shown.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any

from kungfu import Result, Ok, Error

from bazaar._types import new_id, utcnow
from bazaar.errors import Forbidden, NotFound, StorageFailure, ValidationError, storage_failure
from bazaar.inventory import CatalogStore, Item, ListingDraft, ListingPatch
from bazaar.validation import require_id, validate_listing, validate_patch

logger = logging.getLogger(__name__)

type ListingError = ValidationError | NotFound | Forbidden | StorageFailure


class Listings:
    def __init__(self, catalog: CatalogStore) -> None:
        self._catalog = catalog

    async def create(self, seller_id: str, draft: ListingDraft) -> Result[Item, ListingError]:
        match require_id(seller_id, "seller_id"):
            case Error(e):
                return Error(e)
        match validate_listing(draft):
            case Error(e):
                return Error(e)
            case Ok(clean):
                pass

        now = utcnow()
        item = Item(
            id=new_id("itm"),
            seller_id=seller_id,
            title=clean.title,
            description=clean.description,
            price_cents=clean.price_cents,
            stock=clean.stock,
            category=clean.category,
            image_url=clean.image_url,
            created_at=now,
            updated_at=now,
        )
        match await self._catalog.add_item(item):
            case Error(e):
                return Error(storage_failure("create listing", e))
            case Ok(created):
                logger.info("Seller %s listed %s (%s)", seller_id, created.id, created.title)
                return Ok(created)

    async def edit(
        self, item_id: str, by_seller_id: str, patch: ListingPatch
    ) -> Result[Item, ListingError]:
        """
        Apply seller edits.

        A stock edit is an absolute overwrite; it may race with checkouts,
        which is the seller's call to make.
        """
        match await self._owned(item_id, by_seller_id):
            case Error(e):
                return Error(e)
            case Ok(current):
                pass

        if patch.price_cents is not None and patch.price_cents != current.price_cents:
            return Error(ValidationError("price", "cannot be changed once listed"))
        if patch.is_empty():
            return Ok(current)

        match validate_patch(patch):
            case Error(e):
                return Error(e)
            case Ok(clean):
                pass

        changes: dict[str, Any] = {
            k: v for k, v in asdict(clean).items() if v is not None and k != "price_cents"
        }
        if not changes:
            return Ok(current)

        match await self._catalog.update_item(item_id, changes):
            case Error(e):
                return Error(storage_failure("edit listing", e))
            case Ok(None):
                return Error(NotFound("Item", item_id))
            case Ok(updated):
                return Ok(updated)

    async def delete(self, item_id: str, by_seller_id: str) -> Result[None, ListingError]:
        match await self._owned(item_id, by_seller_id):
            case Error(e):
                return Error(e)
        match await self._catalog.delete_item(item_id):
            case Error(e):
                return Error(storage_failure("delete listing", e))
            case Ok(False):
                return Error(NotFound("Item", item_id))
            case Ok(True):
                logger.info("Seller %s deleted %s", by_seller_id, item_id)
                return Ok(None)

    async def get(self, item_id: str) -> Result[Item, NotFound | StorageFailure]:
        match await self._catalog.get_item(item_id):
            case Error(e):
                return Error(storage_failure("read listing", e))
            case Ok(None):
                return Error(NotFound("Item", item_id))
            case Ok(item):
                return Ok(item)

    async def by_seller(self, seller_id: str) -> Result[list[Item], StorageFailure]:
        return await self._list(seller_id=seller_id)

    async def by_category(self, category: str) -> Result[list[Item], StorageFailure]:
        return await self._list(category=category)

    async def all(self) -> Result[list[Item], StorageFailure]:
        return await self._list()

    async def _list(self, **filters: str) -> Result[list[Item], StorageFailure]:
        match await self._catalog.list_items(**filters):
            case Error(e):
                return Error(storage_failure("list listings", e))
            case Ok(items):
                return Ok(items)

    async def _owned(self, item_id: str, seller_id: str) -> Result[Item, ListingError]:
        match await self.get(item_id):
            case Error(e):
                return Error(e)
            case Ok(item):
                if item.seller_id != seller_id:
                    return Error(Forbidden("Only the seller can change this listing"))
                return Ok(item)


__all__ = ("Listings", "ListingError")
