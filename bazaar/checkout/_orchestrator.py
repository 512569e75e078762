"""
Checkout orchestrator — place and cancel orders.

place_order runs the money-moving part as a saga:

    charge ──▶ create order (pending) ──▶ reserve stock ──▶ record payment
      │              │                        │
    refund        cancel                   restock        ◀── compensators

The conditional decrement decides races: when two buyers pay for the last
unit, the first reservation to commit wins and the other is unwound with a
refund obligation.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace

from kungfu import Result, Ok, Error

from bazaar import saga as S
from bazaar.attempts import AttemptStore
from bazaar.checkout._policy import CheckoutPolicy
from bazaar.errors import (
    CheckoutError,
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
    storage_failure,
)
from bazaar.inventory import InventoryStore
from bazaar.orders import NewOrder, Order, OrderLedger, OrderStatus, ShippingInfo
from bazaar.payments import (
    Charge,
    Gateway,
    PaymentLedger,
    PaymentMethod,
    PaymentRecord,
    Refund,
    RefundReason,
)
from bazaar.validation import (
    parse_payment_method,
    require_id,
    validate_quantity,
    validate_shipping,
)

logger = logging.getLogger(__name__)


class CompensationError(Exception):
    """A rollback action could not be applied."""


@dataclass(frozen=True, slots=True)
class _StockTaken:
    """Reservation lost to a concurrent buyer after the charge went through."""

    item_id: str


@dataclass(slots=True)
class _Unwind:
    """What the compensators learned while rolling back one purchase."""

    order_id: str | None = None
    race_lost: bool = False
    refund_id: str | None = None
    refund_issued: bool = False


def _charge_of(payment: PaymentRecord) -> Charge:
    return Charge(
        transaction_id=payment.reference,
        amount_cents=payment.amount_cents,
        method=payment.method,
        payer_id=payment.user_id,
    )


class Checkout:
    """
    The checkout core.

    Example:
        checkout = Checkout(
            inventory=SQLAlchemyInventory(sf),
            orders=OrderLedger(SQLAlchemyOrderStore(sf)),
            payments=SQLAlchemyPaymentLedger(sf),
            gateway=SimulatedGateway(),
        )

        match await checkout.place_order("buyer-1", "itm_42", 2, "gcash"):
            case Ok(order): ...
            case Error(e): print(e.code, e.message)
    """

    def __init__(
        self,
        *,
        inventory: InventoryStore,
        orders: OrderLedger,
        payments: PaymentLedger,
        gateway: Gateway,
        attempts: AttemptStore | None = None,
        policy: CheckoutPolicy | None = None,
    ) -> None:
        self._inventory = inventory
        self._orders = orders
        self._payments = payments
        self._gateway = gateway
        self._attempts = attempts
        self._policy = policy or CheckoutPolicy()

    @property
    def policy(self) -> CheckoutPolicy:
        return self._policy

    # ═══════════════════════════════════════════════════════════════════════════
    # place_order
    # ═══════════════════════════════════════════════════════════════════════════

    async def place_order(
        self,
        buyer_id: str,
        item_id: str,
        quantity: int,
        payment_method: PaymentMethod | str,
        shipping: ShippingInfo | None = None,
        *,
        attempt_key: str | None = None,
    ) -> Result[Order, CheckoutError]:
        """
        Buy ``quantity`` units of an item.

        On success the order is pending with its payment recorded and the
        stock reserved. On failure nothing is left half done: either no money
        moved, or the charge has a refund obligation and the order (if any)
        is cancelled with its stock restored.

        ``attempt_key`` makes a retry after a lost response safe; the gateway
        is never charged twice for the same key.
        """
        match self._validate(buyer_id, item_id, quantity, payment_method, shipping):
            case Error(e):
                return Error(e)
            case Ok((method, clean_shipping)):
                pass

        if attempt_key is None:
            return await self._place(buyer_id, item_id, quantity, method, clean_shipping)
        if self._attempts is None:
            return Error(ValidationError("attempt_key", "attempt keys are not enabled"))
        attempts = self._attempts

        match await self._claim(attempts, attempt_key, buyer_id):
            case Error(e):
                return Error(e)
            case Ok(Order() as previous):
                logger.info("Attempt %s already placed order %s", attempt_key, previous.id)
                return Ok(previous)
            case Ok(None):
                pass

        result = await self._place(buyer_id, item_id, quantity, method, clean_shipping)
        await self._finish_attempt(attempts, attempt_key, result)
        return result

    def _validate(
        self,
        buyer_id: str,
        item_id: str,
        quantity: int,
        payment_method: PaymentMethod | str,
        shipping: ShippingInfo | None,
    ) -> Result[tuple[PaymentMethod, ShippingInfo | None], ValidationError]:
        for value, field in ((buyer_id, "buyer_id"), (item_id, "item_id")):
            match require_id(value, field):
                case Error(e):
                    return Error(e)
        match validate_quantity(quantity):
            case Error(e):
                return Error(e)
        match parse_payment_method(payment_method):
            case Error(e):
                return Error(e)
            case Ok(method):
                pass
        match validate_shipping(shipping):
            case Error(e):
                return Error(e)
            case Ok(clean_shipping):
                return Ok((method, clean_shipping))

    async def _place(
        self,
        buyer_id: str,
        item_id: str,
        quantity: int,
        method: PaymentMethod,
        shipping: ShippingInfo | None,
    ) -> Result[Order, CheckoutError]:
        match await self._inventory.get_item(item_id):
            case Error(e):
                return Error(storage_failure("read item", e))
            case Ok(None):
                return Error(NotFound("Item", item_id))
            case Ok(item):
                pass

        if item.stock < quantity:
            return Error(OutOfStock(item_id, quantity, item.stock))

        amount = item.price_cents * quantity
        new_order = NewOrder(
            item_id=item.id,
            buyer_id=buyer_id,
            seller_id=item.seller_id,
            amount_cents=amount,
            quantity=quantity,
            shipping=shipping,
        )
        unwind = _Unwind()

        purchase = S.from_result(
            lambda: self._charge(amount, method, buyer_id),
            compensate=lambda charge: self._reverse_charge(charge, unwind),
            name="charge",
        ).then(
            lambda charge: S.from_result(
                lambda: self._open_order(new_order, unwind),
                compensate=self._void_order,
                name="create-order",
            )
            .then(
                lambda order: S.from_result(
                    lambda: self._reserve(order, unwind),
                    compensate=self._restock,
                    name="reserve-stock",
                )
            )
            .then(
                lambda order: S.from_result(
                    lambda: self._record_payment(order, charge),
                    name="record-payment",
                )
            )
        )

        match await S.run(purchase):
            case Ok(done):
                order = done.value
                logger.info(
                    "Order %s placed: %s x%d for %s (%s)",
                    order.id,
                    item_id,
                    quantity,
                    buyer_id,
                    method.value,
                )
                return Ok(order)
            case Error(failure):
                return Error(self._explain(failure, item_id, amount, unwind))


    def _explain(
        self,
        failure: S.SagaError[object],
        item_id: str,
        amount: int,
        unwind: _Unwind,
    ) -> CheckoutError:
        if not failure.rollback_complete:
            logger.critical(
                "Checkout for %s rolled back incompletely: %d of %d compensations failed "
                "(failed at %s, order %s, refund %s)",
                item_id,
                failure.compensators_failed,
                failure.compensators_run + failure.compensators_failed,
                failure.failed_step_name,
                unwind.order_id,
                unwind.refund_id,
            )

        match failure.error:
            case _StockTaken():
                logger.error(
                    "Inventory race lost on %s after charge: order %s cancelled, refund %s (%s)",
                    item_id,
                    unwind.order_id,
                    unwind.refund_id,
                    "issued" if unwind.refund_issued else "required",
                )
                return InventoryRaceLost(
                    item_id=item_id,
                    order_id=unwind.order_id or "",
                    amount_cents=amount,
                    refund_id=unwind.refund_id,
                    refund_issued=unwind.refund_issued,
                )
            case StorageFailure() as e:
                logger.error(
                    "Checkout for %s failed at %s: %s", item_id, failure.failed_step_name, e.detail
                )
                return replace(e, refund_id=unwind.refund_id)
            case PaymentDeclined() | PaymentOutcomeUnknown() as e:
                return e

        raise TypeError(f"Unexpected checkout failure: {failure.error!r}")

    # ── saga actions ─────────────────────────────────────────────────────────

    async def _charge(
        self, amount: int, method: PaymentMethod, buyer_id: str
    ) -> Result[Charge, PaymentDeclined | PaymentOutcomeUnknown]:
        timeout = self._policy.gateway_timeout
        try:
            async with asyncio.timeout(timeout.total_seconds()):
                result = await self._gateway.charge(amount, method, buyer_id)
        except TimeoutError:
            logger.warning(
                "Gateway gave no answer within %ss for %s charge of %d by %s; outcome unknown",
                timeout.total_seconds(),
                method.value,
                amount,
                buyer_id,
            )
            return Error(PaymentOutcomeUnknown(method.value, amount, "the payment gateway timed out"))
        except Exception as e:
            logger.warning(
                "Gateway call failed for %s charge of %d by %s; outcome unknown",
                method.value,
                amount,
                buyer_id,
                exc_info=True,
            )
            return Error(PaymentOutcomeUnknown(method.value, amount, f"gateway error: {e}"))

        match result:
            case Ok(charge):
                return Ok(charge)
            case Error(decline):
                logger.warning("Payment declined for %s (%s): %s", buyer_id, method.value, decline.reason)
                return Error(PaymentDeclined(method.value, decline.reason))

    async def _open_order(
        self, new_order: NewOrder, unwind: _Unwind
    ) -> Result[Order, StorageFailure]:
        match await self._orders.create_order(new_order):
            case Ok(order):
                unwind.order_id = order.id
                return Ok(order)
            case Error(e):
                return Error(storage_failure("create order", e))

    async def _reserve(
        self, order: Order, unwind: _Unwind
    ) -> Result[Order, _StockTaken | StorageFailure]:
        match await self._inventory.conditional_decrement(order.item_id, order.quantity):
            case Ok(True):
                return Ok(order)
            case Ok(False):
                unwind.race_lost = True
                return Error(_StockTaken(order.item_id))
            case Error(e):
                return Error(storage_failure("reserve stock", e))

    async def _record_payment(
        self, order: Order, charge: Charge
    ) -> Result[Order, StorageFailure]:
        match await self._payments.record_payment(order.id, charge):
            case Ok(_):
                return Ok(order)
            case Error(e):
                return Error(storage_failure("record payment", e))

    # ── compensators ─────────────────────────────────────────────────────────

    async def _reverse_charge(self, charge: Charge, unwind: _Unwind) -> None:
        reason = (
            RefundReason.INVENTORY_RACE_LOST if unwind.race_lost else RefundReason.CHECKOUT_ABORTED
        )
        match await self._payments.raise_refund(charge, reason, order_id=unwind.order_id):
            case Error(e):
                raise CompensationError(
                    f"could not record refund for charge {charge.transaction_id}: {e.message}"
                )
            case Ok(refund):
                unwind.refund_id = refund.id

        logger.error(
            "Refund required: %d from %s, charge %s (%s, order %s)",
            charge.amount_cents,
            charge.payer_id,
            charge.transaction_id,
            reason.value,
            unwind.order_id,
        )
        if self._policy.auto_refund:
            unwind.refund_issued = await self._issue_refund(refund)

    async def _void_order(self, order: Order) -> None:
        match await self._orders.update_status(
            order.id, OrderStatus.CANCELLED, expected=OrderStatus.PENDING
        ):
            case Error(e):
                raise CompensationError(f"could not cancel order {order.id}: {e.message}")
            case Ok(_):
                pass

    async def _restock(self, order: Order) -> None:
        match await self._inventory.increment_stock(order.item_id, order.quantity):
            case Error(e):
                raise CompensationError(
                    f"could not restore {order.quantity} of {order.item_id}: {e.message}"
                )
            case Ok(_):
                pass

    async def _issue_refund(self, refund: Refund) -> bool:
        """One gateway reversal attempt. The obligation stays open on failure."""
        try:
            async with asyncio.timeout(self._policy.gateway_timeout.total_seconds()):
                result = await self._gateway.refund(refund.charge)
        except Exception:
            logger.warning("Automatic refund %s failed; left open", refund.id, exc_info=True)
            return False

        match result:
            case Error(decline):
                logger.warning("Automatic refund %s declined: %s", refund.id, decline.reason)
                return False
            case Ok(reference):
                pass

        match await self._payments.mark_refund_issued(refund.id, reference):
            case Error(e):
                logger.error(
                    "Refund %s went through as %s but could not be marked issued: %s",
                    refund.id,
                    reference,
                    e.message,
                )
                return True
            case Ok(_):
                logger.info("Refund %s issued as %s", refund.id, reference)
                return True

    # ── attempts ─────────────────────────────────────────────────────────────

    async def _claim(
        self, attempts: AttemptStore, key: str, buyer_id: str
    ) -> Result[Order | None, CheckoutError]:
        """Ok(None): this call owns the attempt. Ok(order): already placed."""
        match await attempts.begin(key, buyer_id, self._policy.attempt_ttl):
            case Error(e):
                return Error(storage_failure("begin attempt", e))
            case Ok(True):
                return Ok(None)
            case Ok(False):
                pass

        match await attempts.get(key):
            case Error(e):
                return Error(storage_failure("read attempt", e))
            case Ok(None):
                # Expired between begin and get
                return Error(DuplicateAttempt(key, "pending"))
            case Ok(record):
                pass

        if record.buyer_id != buyer_id:
            return Error(Forbidden("This checkout attempt belongs to another buyer"))
        if record.is_failed:
            return Error(DuplicateAttempt(key, "failed", record.error_message))
        if record.is_pending or record.order_id is None:
            return Error(DuplicateAttempt(key, "pending"))

        match await self._orders.get_order(record.order_id):
            case Error(e):
                return Error(storage_failure("read order", e))
            case Ok(None):
                return Error(NotFound("Order", record.order_id))
            case Ok(order):
                return Ok(order)

    async def _finish_attempt(
        self, attempts: AttemptStore, key: str, result: Result[Order, CheckoutError]
    ) -> None:
        match result:
            case Ok(order):
                outcome = await attempts.complete(key, order.id)
            case Error(PaymentOutcomeUnknown()):
                # Money may have moved; the key stays pending until checked
                return
            case Error(e):
                outcome = await attempts.fail(key, e.code, e.message)

        match outcome:
            case Error(store_error):
                logger.error("Could not settle attempt %s: %s", key, store_error.message)
            case Ok(_):
                pass

    # ═══════════════════════════════════════════════════════════════════════════
    # cancel_order / advance_order
    # ═══════════════════════════════════════════════════════════════════════════

    async def cancel_order(
        self, order_id: str, by_buyer_id: str
    ) -> Result[Order, CheckoutError]:
        """
        Buyer cancels a pending order.

        The pending → cancelled change is compare-and-set, so two concurrent
        cancels restore the stock once. The payment gets a refund obligation.
        """
        for value, field in ((order_id, "order_id"), (by_buyer_id, "buyer_id")):
            match require_id(value, field):
                case Error(e):
                    return Error(e)

        match await self._load_order(order_id):
            case Error(e):
                return Error(e)
            case Ok(order):
                pass

        if order.buyer_id != by_buyer_id:
            return Error(Forbidden("Only the buyer can cancel this order"))
        if order.status is not OrderStatus.PENDING:
            return Error(
                InvalidTransition(order_id, order.status.value, OrderStatus.CANCELLED.value)
            )

        match await self._payments.payment_for_order(order_id):
            case Error(e):
                return Error(storage_failure("read payment", e))
            case Ok(None):
                return Error(OrderNotSettled(order_id))
            case Ok(payment):
                pass

        match await self._orders.update_status(
            order_id, OrderStatus.CANCELLED, expected=OrderStatus.PENDING
        ):
            case Error(StoreError() as e):
                return Error(storage_failure("cancel order", e))
            case Error(e):
                return Error(e)
            case Ok(cancelled):
                pass

        refund_id: str | None = None
        match await self._payments.raise_refund(
            _charge_of(payment), RefundReason.BUYER_CANCELLED, order_id=order_id
        ):
            case Error(e):
                logger.critical(
                    "Order %s cancelled but refund of charge %s not recorded: %s",
                    order_id,
                    payment.reference,
                    e.message,
                )
            case Ok(refund):
                refund_id = refund.id
                if self._policy.auto_refund:
                    await self._issue_refund(refund)

        match await self._inventory.increment_stock(order.item_id, order.quantity):
            case Error(e):
                logger.critical(
                    "Order %s cancelled but %d of %s not restocked: %s",
                    order_id,
                    order.quantity,
                    order.item_id,
                    e.message,
                )
                return Error(
                    replace(storage_failure("restore stock", e), refund_id=refund_id)
                )
            case Ok(_):
                pass

        logger.info("Order %s cancelled by buyer %s", order_id, by_buyer_id)
        return Ok(cancelled)

    async def advance_order(
        self,
        order_id: str,
        by_seller_id: str,
        new_status: OrderStatus | str,
    ) -> Result[Order, CheckoutError]:
        """
        Seller moves an order forward: confirmed → shipped → delivered.

        Cancelling goes through ``cancel_order`` so the stock comes back.
        """
        for value, field in ((order_id, "order_id"), (by_seller_id, "seller_id")):
            match require_id(value, field):
                case Error(e):
                    return Error(e)

        try:
            status = new_status if isinstance(new_status, OrderStatus) else OrderStatus(new_status)
        except ValueError:
            choices = ", ".join(s.value for s in OrderStatus)
            return Error(ValidationError("status", f"must be one of {choices}"))

        match await self._load_order(order_id):
            case Error(e):
                return Error(e)
            case Ok(order):
                pass

        if order.seller_id != by_seller_id:
            return Error(Forbidden("Only the seller can update this order"))
        if status in (OrderStatus.PENDING, OrderStatus.CANCELLED):
            return Error(InvalidTransition(order_id, order.status.value, status.value))

        if status is OrderStatus.CONFIRMED:
            match await self._payments.payment_for_order(order_id):
                case Error(e):
                    return Error(storage_failure("read payment", e))
                case Ok(None):
                    return Error(OrderNotSettled(order_id))
                case Ok(_):
                    pass

        match await self._orders.update_status(order_id, status, expected=order.status):
            case Error(StoreError() as e):
                return Error(storage_failure("update order", e))
            case Error(e):
                return Error(e)
            case Ok(updated):
                return Ok(updated)

    async def _load_order(self, order_id: str) -> Result[Order, NotFound | StorageFailure]:
        match await self._orders.get_order(order_id):
            case Error(e):
                return Error(storage_failure("read order", e))
            case Ok(None):
                return Error(NotFound("Order", order_id))
            case Ok(order):
                return Ok(order)


__all__ = ("Checkout", "CompensationError")
