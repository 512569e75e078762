"""
Attempt types — checkout attempt records.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from bazaar._types import utcnow


class AttemptState(Enum):
    """
    State of a checkout attempt.

    Lifecycle:
        PENDING → COMPLETED (order placed)
                → FAILED (declined, out of stock, rolled back)
                → stays PENDING when the payment outcome is unknown
    """

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class AttemptRecord:
    """
    A stored checkout attempt.

    Note: order_id only for COMPLETED, error_* only for FAILED.
    """

    key: str
    buyer_id: str
    state: AttemptState
    order_id: str | None
    error_code: str | None
    error_message: str | None
    created_at: datetime
    expires_at: datetime | None = None

    @property
    def is_expired(self) -> bool:
        if self.expires_at is None:
            return False
        return utcnow() > self.expires_at

    @property
    def is_pending(self) -> bool:
        return self.state is AttemptState.PENDING

    @property
    def is_completed(self) -> bool:
        return self.state is AttemptState.COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.state is AttemptState.FAILED


__all__ = ("AttemptState", "AttemptRecord")
