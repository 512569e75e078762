"""
Checkout — order placement with stock reservation.

    from bazaar import checkout as C

    checkout = C.Checkout(
        inventory=inventory,
        orders=ledger,
        payments=payments,
        gateway=gateway,
        policy=C.CheckoutPolicy().with_gateway_timeout(seconds=10),
    )

    await checkout.place_order(buyer_id, item_id, 2, "gcash", shipping)
    await checkout.cancel_order(order_id, by_buyer_id=buyer_id)
    await checkout.advance_order(order_id, by_seller_id=seller_id, new_status="shipped")
"""

from bazaar.checkout._policy import CheckoutPolicy
from bazaar.checkout._orchestrator import Checkout, CompensationError

__all__ = ("Checkout", "CheckoutPolicy", "CompensationError")
