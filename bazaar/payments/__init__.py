"""
Payments — gateway adapter and payment ledger.

    from bazaar import payments as P

    gateway = P.SimulatedGateway(latency=timedelta(0))
    match await gateway.charge(12_500, P.PaymentMethod.GCASH, "buyer-1"):
        case Ok(charge): await ledger.record_payment(order_id, charge)
        case Error(decline): print(decline.reason)
"""

from bazaar.payments._types import (
    PaymentMethod,
    Charge,
    Decline,
    MethodInfo,
    PaymentStatus,
    PaymentRecord,
    RefundReason,
    RefundStatus,
    Refund,
)
from bazaar.payments._gateway import (
    Gateway,
    SimulatedGateway,
    DEFAULT_SUCCESS_RATES,
    payment_methods,
)
from bazaar.payments._ledger import PaymentLedger, MemoryPaymentLedger
from bazaar.payments._sqlalchemy import SQLAlchemyPaymentLedger

__all__ = (
    "PaymentMethod",
    "Charge",
    "Decline",
    "MethodInfo",
    "PaymentStatus",
    "PaymentRecord",
    "RefundReason",
    "RefundStatus",
    "Refund",
    "Gateway",
    "SimulatedGateway",
    "DEFAULT_SUCCESS_RATES",
    "payment_methods",
    "PaymentLedger",
    "MemoryPaymentLedger",
    "SQLAlchemyPaymentLedger",
)
