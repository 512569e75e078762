"""
bazaar — marketplace checkout core.

    from bazaar import saga as S          # Compensated multi-step actions
    from bazaar import inventory as V     # Items and the stock primitives
    from bazaar import orders as O        # Order ledger and lifecycle
    from bazaar import payments as P      # Gateway, payments, refunds
    from bazaar import attempts as A      # Safe checkout retries
    from bazaar.checkout import Checkout  # place_order / cancel_order

    market = await open_marketplace(Settings.from_env())
"""

from bazaar import saga
from bazaar import inventory
from bazaar import orders
from bazaar import payments
from bazaar import attempts
from bazaar import checkout
from bazaar.errors import CheckoutError
from bazaar._types import (
    Result,
    Ok,
    Error,
    Cents,
    new_id,
    format_cents,
)

__version__ = "0.1.0"

__all__ = (
    "saga",
    "inventory",
    "orders",
    "payments",
    "attempts",
    "checkout",
    "CheckoutError",
    "Result",
    "Ok",
    "Error",
    "Cents",
    "new_id",
    "format_cents",
)
