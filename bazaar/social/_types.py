"""Association records — cart lines and follow counts."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class CartLine:
    id: str
    user_id: str
    item_id: str
    quantity: int
    created_at: datetime


@dataclass(frozen=True, slots=True)
class FollowCounts:
    followers: int
    following: int


__all__ = ("CartLine", "FollowCounts")
