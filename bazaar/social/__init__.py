"""
Social — cart, favorites and follows.

Plain association records. Uniqueness lives in the database; repeated adds
are upserts, never duplicates.
"""

from bazaar.social._types import CartLine, FollowCounts
from bazaar.social._cart import Cart
from bazaar.social._favorites import Favorites
from bazaar.social._follows import Follows

__all__ = ("CartLine", "FollowCounts", "Cart", "Favorites", "Follows")
