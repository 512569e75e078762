"""
HTTP surface — FastAPI routes over the marketplace.

    market = await open_marketplace(Settings.from_env())
    app = build_api(market)          # uvicorn bazaar.api:app-style serving

Caller identity travels in the payload: there is no ambient session.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

import fastapi
from pydantic import BaseModel, Field

from kungfu import Result, Ok, Error

from bazaar import wire as W
from bazaar.app import Marketplace
from bazaar.errors import CheckoutError, StorageFailure
from bazaar.orders import Order, ShippingInfo
from bazaar.payments import MethodInfo, Refund, payment_methods


# ═══════════════════════════════════════════════════════════════════════════════
# Status mapping
# ═══════════════════════════════════════════════════════════════════════════════


STATUS_BY_CODE: dict[str, int] = {
    "VALIDATION_ERROR": 422,
    "NOT_FOUND": 404,
    "FORBIDDEN": 403,
    "OUT_OF_STOCK": 409,
    "INVENTORY_RACE_LOST": 409,
    "INVALID_TRANSITION": 409,
    "ORDER_NOT_SETTLED": 409,
    "DUPLICATE_ATTEMPT": 409,
    "PAYMENT_DECLINED": 402,
    "PAYMENT_OUTCOME_UNKNOWN": 504,
    "STORAGE_FAILURE": 503,
}


def status_of(result: Result[Any, CheckoutError]) -> int:
    match result:
        case Ok(_):
            return 200
        case Error(e):
            return STATUS_BY_CODE.get(e.code, 500)


# ═══════════════════════════════════════════════════════════════════════════════
# Domain commands
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class PlaceOrder:
    buyer_id: str
    item_id: str
    quantity: int
    payment_method: str
    shipping: ShippingInfo | None
    attempt_key: str | None


@dataclass(frozen=True, slots=True)
class CancelOrder:
    order_id: str
    buyer_id: str


@dataclass(frozen=True, slots=True)
class AdvanceOrder:
    order_id: str
    seller_id: str
    status: str


@dataclass(frozen=True, slots=True)
class ListOrders:
    user_id: str
    as_seller: bool


@dataclass(frozen=True, slots=True)
class ListOpenRefunds:
    pass


@dataclass(frozen=True, slots=True)
class ListPaymentMethods:
    pass


# ═══════════════════════════════════════════════════════════════════════════════
# Transport models
# ═══════════════════════════════════════════════════════════════════════════════


class ErrorModel(BaseModel):
    code: str
    message: str


class ShippingModel(BaseModel):
    full_name: str
    address: str
    city: str
    postal_code: str
    phone: str


class OrderModel(BaseModel):
    id: str
    item_id: str
    buyer_id: str
    seller_id: str
    amount_cents: int
    quantity: int
    status: str
    shipping: ShippingModel | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def of(cls, order: Order) -> OrderModel:
        return cls(
            id=order.id,
            item_id=order.item_id,
            buyer_id=order.buyer_id,
            seller_id=order.seller_id,
            amount_cents=order.amount_cents,
            quantity=order.quantity,
            status=order.status.value,
            shipping=ShippingModel(**order.shipping.to_dict()) if order.shipping else None,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class PlaceOrderIn(BaseModel):
    buyer_id: str
    item_id: str
    quantity: int = Field(default=1)
    payment_method: str
    shipping: ShippingModel | None = None
    attempt_key: str | None = None

    def to_domain(self) -> PlaceOrder:
        return PlaceOrder(
            buyer_id=self.buyer_id,
            item_id=self.item_id,
            quantity=self.quantity,
            payment_method=self.payment_method,
            shipping=ShippingInfo.from_dict(self.shipping.model_dump()) if self.shipping else None,
            attempt_key=self.attempt_key,
        )


class CancelOrderIn(BaseModel):
    order_id: str
    buyer_id: str

    def to_domain(self) -> CancelOrder:
        return CancelOrder(order_id=self.order_id, buyer_id=self.buyer_id)


class AdvanceOrderIn(BaseModel):
    order_id: str
    seller_id: str
    status: str

    def to_domain(self) -> AdvanceOrder:
        return AdvanceOrder(order_id=self.order_id, seller_id=self.seller_id, status=self.status)


class OrderOut(BaseModel):
    ok: bool
    order: OrderModel | None = None
    error: ErrorModel | None = None

    @classmethod
    def from_domain(cls, dom: Result[Order, CheckoutError]) -> OrderOut:
        match dom:
            case Ok(order):
                return cls(ok=True, order=OrderModel.of(order))
            case Error(e):
                return cls(ok=False, error=ErrorModel(code=e.code, message=e.message))


class BuyerOrdersIn(BaseModel):
    buyer_id: str

    def to_domain(self) -> ListOrders:
        return ListOrders(user_id=self.buyer_id, as_seller=False)


class SellerOrdersIn(BaseModel):
    seller_id: str

    def to_domain(self) -> ListOrders:
        return ListOrders(user_id=self.seller_id, as_seller=True)


class OrdersOut(BaseModel):
    ok: bool
    orders: list[OrderModel] = Field(default_factory=list)
    error: ErrorModel | None = None

    @classmethod
    def from_domain(cls, dom: Result[list[Order], StorageFailure]) -> OrdersOut:
        match dom:
            case Ok(orders):
                return cls(ok=True, orders=[OrderModel.of(o) for o in orders])
            case Error(e):
                return cls(ok=False, error=ErrorModel(code=e.code, message=e.message))


class RefundModel(BaseModel):
    id: str
    order_id: str | None
    user_id: str
    amount_cents: int
    method: str
    charge_reference: str
    reason: str
    created_at: datetime


class OpenRefundsIn(BaseModel):
    def to_domain(self) -> ListOpenRefunds:
        return ListOpenRefunds()


class RefundsOut(BaseModel):
    ok: bool
    refunds: list[RefundModel] = Field(default_factory=list)
    error: ErrorModel | None = None

    @classmethod
    def from_domain(cls, dom: Result[list[Refund], StorageFailure]) -> RefundsOut:
        match dom:
            case Ok(refunds):
                return cls(
                    ok=True,
                    refunds=[
                        RefundModel(
                            id=r.id,
                            order_id=r.order_id,
                            user_id=r.user_id,
                            amount_cents=r.amount_cents,
                            method=r.method.value,
                            charge_reference=r.charge_reference,
                            reason=r.reason.value,
                            created_at=r.created_at,
                        )
                        for r in refunds
                    ],
                )
            case Error(e):
                return cls(ok=False, error=ErrorModel(code=e.code, message=e.message))


class MethodModel(BaseModel):
    id: str
    name: str
    description: str


class PaymentMethodsIn(BaseModel):
    def to_domain(self) -> ListPaymentMethods:
        return ListPaymentMethods()


class PaymentMethodsOut(BaseModel):
    methods: list[MethodModel]

    @classmethod
    def from_domain(cls, dom: Result[tuple[MethodInfo, ...], Any]) -> PaymentMethodsOut:
        match dom:
            case Ok(methods):
                return cls(
                    methods=[
                        MethodModel(id=m.id.value, name=m.name, description=m.description)
                        for m in methods
                    ]
                )
            case Error(e):
                raise RuntimeError(f"Payment method catalogue unavailable: {e}")


# ═══════════════════════════════════════════════════════════════════════════════
# Application
# ═══════════════════════════════════════════════════════════════════════════════


def build_api(market: Marketplace) -> fastapi.FastAPI:
    async def place(cmd: PlaceOrder) -> Result[Order, CheckoutError]:
        return await market.checkout.place_order(
            cmd.buyer_id,
            cmd.item_id,
            cmd.quantity,
            cmd.payment_method,
            cmd.shipping,
            attempt_key=cmd.attempt_key,
        )

    async def cancel(cmd: CancelOrder) -> Result[Order, CheckoutError]:
        return await market.checkout.cancel_order(cmd.order_id, cmd.buyer_id)

    async def advance(cmd: AdvanceOrder) -> Result[Order, CheckoutError]:
        return await market.checkout.advance_order(cmd.order_id, cmd.seller_id, cmd.status)

    async def list_orders(cmd: ListOrders) -> Result[list[Order], StorageFailure]:
        if cmd.as_seller:
            return await market.orders_for_seller(cmd.user_id)
        return await market.orders_for_buyer(cmd.user_id)

    async def open_refunds(cmd: ListOpenRefunds) -> Result[list[Refund], StorageFailure]:
        return await market.open_refunds()

    async def methods(cmd: ListPaymentMethods) -> Result[tuple[MethodInfo, ...], Any]:
        return Ok(payment_methods())

    app = W.application().mount(
        W.endpoint(place).expose(
            W.HTTPRouteTrigger("POST", "/checkout"),
            W.RequestResponseCodec(PlaceOrderIn, OrderOut, status=status_of),
        ),
        W.endpoint(cancel).expose(
            W.HTTPRouteTrigger("POST", "/orders/cancel"),
            W.RequestResponseCodec(CancelOrderIn, OrderOut, status=status_of),
        ),
        W.endpoint(advance).expose(
            W.HTTPRouteTrigger("POST", "/orders/advance"),
            W.RequestResponseCodec(AdvanceOrderIn, OrderOut, status=status_of),
        ),
        W.endpoint(list_orders)
        .expose(
            W.HTTPRouteTrigger("GET", "/orders/buyer"),
            W.RequestResponseCodec(BuyerOrdersIn, OrdersOut, status=status_of),
        )
        .expose(
            W.HTTPRouteTrigger("GET", "/orders/seller"),
            W.RequestResponseCodec(SellerOrdersIn, OrdersOut, status=status_of),
        ),
        W.endpoint(open_refunds).expose(
            W.HTTPRouteTrigger("GET", "/refunds/open"),
            W.RequestResponseCodec(OpenRefundsIn, RefundsOut, status=status_of),
        ),
        W.endpoint(methods).expose(
            W.HTTPRouteTrigger("GET", "/payment-methods"),
            W.RequestResponseCodec(PaymentMethodsIn, PaymentMethodsOut),
        ),
    )

    return W.from_application(app, title="bazaar")


__all__ = ("build_api", "status_of", "STATUS_BY_CODE")
