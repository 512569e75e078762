"""Inventory domain models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Item:
    """
    A listed item.

    Invariants: ``stock >= 0``; ``price_cents`` never changes after listing.
    """

    id: str
    seller_id: str
    title: str
    description: str
    price_cents: int
    stock: int
    category: str
    image_url: str | None
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True, slots=True)
class ListingDraft:
    """Seller input for a new listing (unvalidated)."""

    title: str
    description: str
    price_cents: int
    stock: int
    category: str = "Other"
    image_url: str | None = None


@dataclass(frozen=True, slots=True)
class ListingPatch:
    """Seller edits. ``None`` leaves a field untouched."""

    title: str | None = None
    description: str | None = None
    price_cents: int | None = None
    stock: int | None = None
    category: str | None = None
    image_url: str | None = None

    def is_empty(self) -> bool:
        return all(
            v is None
            for v in (
                self.title,
                self.description,
                self.price_cents,
                self.stock,
                self.category,
                self.image_url,
            )
        )


__all__ = ("Item", "ListingDraft", "ListingPatch")
