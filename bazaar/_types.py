"""
Core types for bazaar.

Re-exports from kungfu + identifier and money aliases.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

# Re-export from kungfu
from kungfu import Result, Ok, Error, LazyCoroResult

# ═══════════════════════════════════════════════════════════════════════════════
# Identifiers
# ═══════════════════════════════════════════════════════════════════════════════

type UserId = str
type ItemId = str
type OrderId = str
type PaymentId = str
type RefundId = str

type Cents = int
"""Money in minor units (centavos)."""


def new_id(prefix: str) -> str:
    """Generate a prefixed opaque identifier, e.g. ``ord_1a2b3c4d5e6f``."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def format_cents(amount: Cents) -> str:
    """Render minor units for humans: 129950 → '₱1,299.50'."""
    return f"₱{amount / 100:,.2f}"


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    # Re-exports from kungfu
    "Result",
    "Ok",
    "Error",
    "LazyCoroResult",
    # Aliases
    "UserId",
    "ItemId",
    "OrderId",
    "PaymentId",
    "RefundId",
    "Cents",
    # Helpers
    "new_id",
    "utcnow",
    "format_cents",
)
