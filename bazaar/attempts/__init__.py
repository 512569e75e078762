"""
Checkout attempts — make a retried ``place_order`` safe.

    from bazaar import attempts as A

    store = A.SQLAlchemyAttemptStore(session_factory)
    await checkout.place_order(..., attempt_key="cart-7f3a")

A completed key returns the recorded order without charging again; a key
whose payment outcome is unknown stays pending and is refused.
"""

from bazaar.attempts._types import AttemptState, AttemptRecord
from bazaar.attempts._store import AttemptStore, MemoryAttemptStore
from bazaar.attempts._sqlalchemy import SQLAlchemyAttemptStore

__all__ = (
    "AttemptState",
    "AttemptRecord",
    "AttemptStore",
    "MemoryAttemptStore",
    "SQLAlchemyAttemptStore",
)
