from __future__ import annotations

import asyncio
import logging

import pytest
from kungfu import Result, Ok, Error

from bazaar.app import Marketplace
from bazaar.attempts import MemoryAttemptStore
from bazaar.checkout import Checkout, CheckoutPolicy
from bazaar.errors import (
    DuplicateAttempt,
    Forbidden,
    InvalidTransition,
    InventoryRaceLost,
    NotFound,
    OrderNotSettled,
    OutOfStock,
    PaymentDeclined,
    PaymentOutcomeUnknown,
    StorageFailure,
    StoreError,
    ValidationError,
)
from bazaar.inventory import MemoryInventory
from bazaar.orders import MemoryOrderStore, NewOrder, OrderLedger, OrderStatus, ShippingInfo
from bazaar.payments import (
    Charge,
    MemoryPaymentLedger,
    PaymentMethod,
    PaymentRecord,
    RefundReason,
    RefundStatus,
)

from tests.conftest import SHIPPING, FakeGateway, err, make_item, ok


async def stock_of(market: Marketplace, item_id: str) -> int:
    item = ok(await market.catalog.get_item(item_id))
    assert item is not None
    return item.stock


def count_ok(results: list[Result]) -> int:
    return sum(1 for r in results if isinstance(r, Ok))


# ═══════════════════════════════════════════════════════════════════════════════
# place_order
# ═══════════════════════════════════════════════════════════════════════════════


async def test_successful_checkout(market_for, gateway: FakeGateway) -> None:
    item = make_item(stock=5, price_cents=10_000)
    market = market_for(item, gateway=gateway)

    order = ok(await market.checkout.place_order("buyer-1", item.id, 2, "gcash", SHIPPING))

    assert order.status is OrderStatus.PENDING
    assert (order.amount_cents, order.quantity) == (20_000, 2)
    assert order.seller_id == item.seller_id
    assert order.shipping == SHIPPING
    assert await stock_of(market, item.id) == 3
    assert gateway.charge_calls == 1

    payment = ok(await market.payments.payment_for_order(order.id))
    assert payment is not None
    assert payment.reference == gateway.charges[0].transaction_id
    assert payment.method is PaymentMethod.GCASH
    assert ok(await market.open_refunds()) == []


@pytest.mark.parametrize(
    ("buyer", "quantity", "method", "shipping", "field"),
    [
        ("", 1, "gcash", None, "buyer_id"),
        ("buyer-1", 0, "gcash", None, "quantity"),
        ("buyer-1", 1, "bitcoin", None, "payment_method"),
        (
            "buyer-1",
            1,
            "card",
            ShippingInfo("<b></b>", "1 Road", "Cebu", "6000", "0917"),
            "shipping.full_name",
        ),
    ],
)
async def test_bad_input_is_rejected_before_any_charge(
    market_for, gateway, buyer, quantity, method, shipping, field
) -> None:
    item = make_item(stock=5)
    market = market_for(item, gateway=gateway)

    error = err(await market.checkout.place_order(buyer, item.id, quantity, method, shipping))

    assert isinstance(error, ValidationError)
    assert error.field == field
    assert gateway.charge_calls == 0
    assert await stock_of(market, item.id) == 5


async def test_unknown_item(market_for, gateway) -> None:
    market = market_for(gateway=gateway)

    error = err(await market.checkout.place_order("buyer-1", "itm_missing", 1, "card"))

    assert isinstance(error, NotFound)
    assert gateway.charge_calls == 0


@pytest.mark.parametrize(("stock", "quantity"), [(0, 1), (1, 2)])
async def test_insufficient_stock_charges_nothing(market_for, gateway, stock, quantity) -> None:
    item = make_item(stock=stock)
    market = market_for(item, gateway=gateway)

    error = err(await market.checkout.place_order("buyer-1", item.id, quantity, "card"))

    assert isinstance(error, OutOfStock)
    assert (error.requested, error.available) == (quantity, stock)
    assert gateway.charge_calls == 0
    assert ok(await market.orders_for_buyer("buyer-1")) == []
    assert ok(await market.payment_history("buyer-1")) == []
    assert await stock_of(market, item.id) == stock


async def test_attempt_key_needs_an_attempt_store(gateway) -> None:
    item = make_item()
    checkout = Checkout(
        inventory=MemoryInventory([item]),
        orders=OrderLedger(MemoryOrderStore()),
        payments=MemoryPaymentLedger(),
        gateway=gateway,
    )

    error = err(await checkout.place_order("buyer-1", item.id, 1, "card", attempt_key="k1"))

    assert isinstance(error, ValidationError)
    assert error.field == "attempt_key"
    assert gateway.charge_calls == 0


async def test_declined_payment_leaves_no_records(market_for) -> None:
    gateway = FakeGateway(decline="Card payment declined. Please check your card details.")
    item = make_item(stock=5)
    market = market_for(item, gateway=gateway)

    error = err(await market.checkout.place_order("buyer-1", item.id, 1, "card"))

    assert isinstance(error, PaymentDeclined)
    assert error.message == "Card payment declined. Please check your card details."
    assert ok(await market.orders_for_buyer("buyer-1")) == []
    assert ok(await market.payment_history("buyer-1")) == []
    assert ok(await market.open_refunds()) == []
    assert await stock_of(market, item.id) == 5


async def test_gateway_timeout_is_an_unknown_outcome(market_for, fast_timeout) -> None:
    gateway = FakeGateway(hang=True)
    item = make_item(stock=5)
    market = market_for(item, gateway=gateway, policy=fast_timeout)

    error = err(await market.checkout.place_order("buyer-1", item.id, 1, "gcash"))

    assert isinstance(error, PaymentOutcomeUnknown)
    assert "purchase history" in error.message
    assert gateway.charge_calls == 1
    assert ok(await market.orders_for_buyer("buyer-1")) == []
    assert await stock_of(market, item.id) == 5


async def test_gateway_crash_is_an_unknown_outcome(market_for) -> None:
    gateway = FakeGateway(explode=True)
    item = make_item()
    market = market_for(item, gateway=gateway)

    error = err(await market.checkout.place_order("buyer-1", item.id, 1, "paymaya"))

    assert isinstance(error, PaymentOutcomeUnknown)
    assert "connection reset" in error.reason


# ═══════════════════════════════════════════════════════════════════════════════
# Concurrent buyers
# ═══════════════════════════════════════════════════════════════════════════════


async def test_last_unit_goes_to_exactly_one_buyer(market_for) -> None:
    gateway = FakeGateway(delay=0.05)
    item = make_item(stock=1, price_cents=25_000)
    market = market_for(item, gateway=gateway)

    first, second = await asyncio.gather(
        market.checkout.place_order("buyer-a", item.id, 1, "bank_transfer"),
        market.checkout.place_order("buyer-b", item.id, 1, "bank_transfer"),
    )

    assert count_ok([first, second]) == 1
    loser = second if isinstance(first, Ok) else first
    error = err(loser)
    assert isinstance(error, InventoryRaceLost)
    assert error.refund_issued
    assert error.refund_id is not None
    assert "has been refunded" in error.message

    assert await stock_of(market, item.id) == 0
    assert gateway.charge_calls == 2
    assert len(gateway.refunds) == 1
    assert ok(await market.open_refunds()) == []

    lost_order = ok(await market.orders.get_order(error.order_id))
    assert lost_order is not None and lost_order.status is OrderStatus.CANCELLED
    assert ok(await market.payments.payment_for_order(error.order_id)) is None


async def test_lost_race_without_auto_refund_leaves_an_open_obligation(market_for) -> None:
    gateway = FakeGateway(delay=0.05)
    item = make_item(stock=1, price_cents=25_000)
    market = market_for(
        item, gateway=gateway, policy=CheckoutPolicy().with_auto_refund(False)
    )

    results = await asyncio.gather(
        market.checkout.place_order("buyer-a", item.id, 1, "gcash"),
        market.checkout.place_order("buyer-b", item.id, 1, "gcash"),
    )

    [error] = [err(r) for r in results if isinstance(r, Error)]
    assert isinstance(error, InventoryRaceLost)
    assert not error.refund_issued
    assert "will be refunded" in error.message

    [refund] = ok(await market.open_refunds())
    assert refund.id == error.refund_id
    assert refund.reason is RefundReason.INVENTORY_RACE_LOST
    assert refund.amount_cents == 25_000
    assert gateway.refunds == []


async def test_stock_is_conserved_under_contention(market_for) -> None:
    gateway = FakeGateway(delay=0.02)
    item = make_item(stock=3)
    market = market_for(item, gateway=gateway)

    results = await asyncio.gather(
        *(
            market.checkout.place_order(f"buyer-{n}", item.id, 1, "bank_transfer")
            for n in range(6)
        )
    )

    assert count_ok(results) == 3
    final = await stock_of(market, item.id)
    assert final == 0

    live = [
        o
        for o in ok(await market.orders_for_seller(item.seller_id))
        if o.status is not OrderStatus.CANCELLED
    ]
    assert sum(o.quantity for o in live) == item.stock - final
    assert all(isinstance(err(r), InventoryRaceLost) for r in results if isinstance(r, Error))


# ═══════════════════════════════════════════════════════════════════════════════
# Rollback on storage failure
# ═══════════════════════════════════════════════════════════════════════════════


class PaymentsDown(MemoryPaymentLedger):
    async def record_payment(
        self, order_id: str, charge: Charge
    ) -> Result[PaymentRecord, StoreError]:
        return Error(StoreError("disk full"))


class RestockDown(MemoryInventory):
    async def increment_stock(self, item_id: str, quantity: int) -> Result[None, StoreError]:
        return Error(StoreError("connection lost"))


def assembled(inventory, payments, gateway) -> Marketplace:
    return Marketplace.assemble(
        catalog=inventory,
        orders=OrderLedger(MemoryOrderStore()),
        payments=payments,
        attempts=MemoryAttemptStore(),
        gateway=gateway,
    )


async def test_storage_failure_after_charge_unwinds_everything(gateway) -> None:
    item = make_item(stock=5)
    market = assembled(MemoryInventory([item]), PaymentsDown(), gateway)

    error = err(await market.checkout.place_order("buyer-1", item.id, 2, "card"))

    assert isinstance(error, StorageFailure)
    assert error.refund_id is not None
    assert "refunded" in error.message
    assert await stock_of(market, item.id) == 5
    [order] = ok(await market.orders_for_buyer("buyer-1"))
    assert order.status is OrderStatus.CANCELLED
    assert len(gateway.refunds) == 1


async def test_failed_compensation_is_logged_critical(gateway, caplog) -> None:
    item = make_item(stock=5)
    market = assembled(RestockDown([item]), PaymentsDown(), gateway)

    with caplog.at_level(logging.CRITICAL):
        error = err(await market.checkout.place_order("buyer-1", item.id, 1, "card"))

    assert isinstance(error, StorageFailure)
    assert any(r.levelno == logging.CRITICAL for r in caplog.records)
    assert len(gateway.refunds) == 1


async def test_cancel_keeps_the_refund_when_restock_fails(gateway, caplog) -> None:
    item = make_item(stock=5)
    market = assembled(RestockDown([item]), MemoryPaymentLedger(), gateway)
    order = ok(await market.checkout.place_order("buyer-1", item.id, 2, "gcash"))

    with caplog.at_level(logging.CRITICAL):
        error = err(await market.checkout.cancel_order(order.id, "buyer-1"))

    assert isinstance(error, StorageFailure)
    assert error.operation == "restore stock"
    [refund] = ok(await market.payments.refunds_for_order(order.id))
    assert error.refund_id == refund.id
    assert refund.reason is RefundReason.BUYER_CANCELLED
    assert refund.status is RefundStatus.ISSUED
    assert len(gateway.refunds) == 1
    assert any(r.levelno == logging.CRITICAL for r in caplog.records)

    cancelled = ok(await market.orders.get_order(order.id))
    assert cancelled is not None and cancelled.status is OrderStatus.CANCELLED


# ═══════════════════════════════════════════════════════════════════════════════
# Attempt keys
# ═══════════════════════════════════════════════════════════════════════════════


async def test_replayed_attempt_returns_the_same_order(market_for, gateway) -> None:
    item = make_item(stock=5)
    market = market_for(item, gateway=gateway)

    first = ok(await market.checkout.place_order("buyer-1", item.id, 1, "card", attempt_key="k1"))
    again = ok(await market.checkout.place_order("buyer-1", item.id, 1, "card", attempt_key="k1"))

    assert again.id == first.id
    assert gateway.charge_calls == 1
    assert await stock_of(market, item.id) == 4


async def test_failed_attempt_is_not_retried(market_for) -> None:
    gateway = FakeGateway(decline="PayMaya payment failed. Please try again.")
    item = make_item()
    market = market_for(item, gateway=gateway)

    err(await market.checkout.place_order("buyer-1", item.id, 1, "paymaya", attempt_key="k1"))
    error = err(
        await market.checkout.place_order("buyer-1", item.id, 1, "paymaya", attempt_key="k1")
    )

    assert isinstance(error, DuplicateAttempt)
    assert error.state == "failed"
    assert "PayMaya payment failed" in error.message
    assert gateway.charge_calls == 1


async def test_unknown_outcome_keeps_the_attempt_pending(market_for, fast_timeout) -> None:
    gateway = FakeGateway(hang=True)
    item = make_item()
    market = market_for(item, gateway=gateway, policy=fast_timeout)

    first = err(await market.checkout.place_order("buyer-1", item.id, 1, "gcash", attempt_key="k1"))
    second = err(await market.checkout.place_order("buyer-1", item.id, 1, "gcash", attempt_key="k1"))

    assert isinstance(first, PaymentOutcomeUnknown)
    assert isinstance(second, DuplicateAttempt)
    assert second.state == "pending"
    assert gateway.charge_calls == 1


async def test_attempt_key_belongs_to_one_buyer(market_for, gateway) -> None:
    item = make_item()
    market = market_for(item, gateway=gateway)

    ok(await market.checkout.place_order("buyer-1", item.id, 1, "card", attempt_key="k1"))
    error = err(await market.checkout.place_order("buyer-2", item.id, 1, "card", attempt_key="k1"))

    assert isinstance(error, Forbidden)


# ═══════════════════════════════════════════════════════════════════════════════
# cancel_order / advance_order
# ═══════════════════════════════════════════════════════════════════════════════


async def test_cancel_restores_stock_and_raises_refund(market_for, gateway) -> None:
    item = make_item(stock=5)
    market = market_for(item, gateway=gateway)
    order = ok(await market.checkout.place_order("buyer-1", item.id, 2, "gcash"))
    assert await stock_of(market, item.id) == 3

    cancelled = ok(await market.checkout.cancel_order(order.id, "buyer-1"))

    assert cancelled.status is OrderStatus.CANCELLED
    assert await stock_of(market, item.id) == 5
    [refund] = ok(await market.payments.refunds_for_order(order.id))
    assert refund.reason is RefundReason.BUYER_CANCELLED
    assert refund.status is RefundStatus.ISSUED
    assert refund.amount_cents == order.amount_cents


async def test_second_cancel_is_rejected_and_restocks_nothing(market_for, gateway) -> None:
    item = make_item(stock=5)
    market = market_for(item, gateway=gateway)
    order = ok(await market.checkout.place_order("buyer-1", item.id, 2, "gcash"))
    ok(await market.checkout.cancel_order(order.id, "buyer-1"))

    error = err(await market.checkout.cancel_order(order.id, "buyer-1"))

    assert isinstance(error, InvalidTransition)
    assert await stock_of(market, item.id) == 5


async def test_concurrent_cancels_restock_once(market_for, gateway) -> None:
    item = make_item(stock=5)
    market = market_for(item, gateway=gateway)
    order = ok(await market.checkout.place_order("buyer-1", item.id, 2, "gcash"))

    results = await asyncio.gather(
        market.checkout.cancel_order(order.id, "buyer-1"),
        market.checkout.cancel_order(order.id, "buyer-1"),
    )

    assert count_ok(results) == 1
    assert await stock_of(market, item.id) == 5


async def test_only_the_buyer_can_cancel(market_for, gateway) -> None:
    item = make_item()
    market = market_for(item, gateway=gateway)
    order = ok(await market.checkout.place_order("buyer-1", item.id, 1, "card"))

    assert isinstance(err(await market.checkout.cancel_order(order.id, "buyer-2")), Forbidden)


async def test_cancel_waits_for_payment_to_be_recorded(market_for) -> None:
    item = make_item()
    market = market_for(item)
    order = ok(
        await market.orders.create_order(
            NewOrder(
                item_id=item.id,
                buyer_id="buyer-1",
                seller_id=item.seller_id,
                amount_cents=item.price_cents,
                quantity=1,
            )
        )
    )

    error = err(await market.checkout.cancel_order(order.id, "buyer-1"))

    assert isinstance(error, OrderNotSettled)
    assert await stock_of(market, item.id) == item.stock


async def test_seller_moves_order_through_fulfilment(market_for, gateway) -> None:
    item = make_item()
    market = market_for(item, gateway=gateway)
    order = ok(await market.checkout.place_order("buyer-1", item.id, 1, "card"))

    for status in ("confirmed", "shipped", "delivered"):
        order = ok(await market.checkout.advance_order(order.id, item.seller_id, status))

    assert order.status is OrderStatus.DELIVERED
    assert [o.id for o in ok(await market.earnings_history(item.seller_id))] == [order.id]
    assert isinstance(
        err(await market.checkout.cancel_order(order.id, "buyer-1")), InvalidTransition
    )


async def test_advance_order_guards(market_for, gateway) -> None:
    item = make_item()
    market = market_for(item, gateway=gateway)
    order = ok(await market.checkout.place_order("buyer-1", item.id, 1, "card"))

    checkout = market.checkout
    assert isinstance(err(await checkout.advance_order(order.id, "someone", "confirmed")), Forbidden)
    assert isinstance(
        err(await checkout.advance_order(order.id, item.seller_id, "lost")), ValidationError
    )
    assert isinstance(
        err(await checkout.advance_order(order.id, item.seller_id, "cancelled")), InvalidTransition
    )
    assert isinstance(
        err(await checkout.advance_order(order.id, item.seller_id, "shipped")), InvalidTransition
    )


async def test_unpaid_order_cannot_be_confirmed(market_for) -> None:
    item = make_item()
    market = market_for(item)
    order = ok(
        await market.orders.create_order(
            NewOrder(
                item_id=item.id,
                buyer_id="buyer-1",
                seller_id=item.seller_id,
                amount_cents=item.price_cents,
                quantity=1,
            )
        )
    )

    error = err(await market.checkout.advance_order(order.id, item.seller_id, "confirmed"))

    assert isinstance(error, OrderNotSettled)
