"""
Orders — the order ledger.

    from bazaar import orders as O

    ledger = O.OrderLedger(O.SQLAlchemyOrderStore(session_factory))
    order = await ledger.create_order(O.NewOrder(...))
    await ledger.update_status(order_id, O.OrderStatus.CONFIRMED)
"""

from bazaar.orders._types import (
    OrderStatus,
    TRANSITIONS,
    can_transition,
    ShippingInfo,
    NewOrder,
    Order,
    OrderStats,
)
from bazaar.orders._ledger import OrderStore, MemoryOrderStore, OrderLedger
from bazaar.orders._sqlalchemy import SQLAlchemyOrderStore

__all__ = (
    "OrderStatus",
    "TRANSITIONS",
    "can_transition",
    "ShippingInfo",
    "NewOrder",
    "Order",
    "OrderStats",
    "OrderStore",
    "MemoryOrderStore",
    "OrderLedger",
    "SQLAlchemyOrderStore",
)
