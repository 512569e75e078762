from __future__ import annotations

import asyncio
import itertools
from collections.abc import AsyncIterator, Callable
from datetime import datetime, timedelta
from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kungfu import Result, Ok, Error

from bazaar._types import utcnow
from bazaar.app import Marketplace
from bazaar.checkout import CheckoutPolicy
from bazaar.db import create_database
from bazaar.inventory import Item
from bazaar.orders import ShippingInfo
from bazaar.payments import Charge, Decline, PaymentMethod

_ids = itertools.count(1)


def make_item(
    *,
    id: str | None = None,
    seller_id: str = "seller-1",
    price_cents: int = 10_000,
    stock: int = 5,
    category: str = "Gadgets",
    created_at: datetime | None = None,
) -> Item:
    now = created_at or utcnow()
    return Item(
        id=id or f"itm_test{next(_ids)}",
        seller_id=seller_id,
        title="Mechanical keyboard",
        description="Hot-swappable switches, barely used.",
        price_cents=price_cents,
        stock=stock,
        category=category,
        image_url=None,
        created_at=now,
        updated_at=now,
    )


SHIPPING = ShippingInfo(
    full_name="Maria Santos",
    address="45 Rizal Ave",
    city="Manila",
    postal_code="1000",
    phone="09181234567",
)


class FakeGateway:
    """
    Scriptable gateway.

    decline: reason to decline every charge with
    delay: seconds to sleep inside charge (lets concurrent buyers interleave)
    hang: never answer a charge
    explode: raise mid-call
    refund_fails: decline every refund
    """

    def __init__(
        self,
        *,
        decline: str | None = None,
        delay: float = 0.0,
        hang: bool = False,
        explode: bool = False,
        refund_fails: bool = False,
    ) -> None:
        self.decline = decline
        self.delay = delay
        self.hang = hang
        self.explode = explode
        self.refund_fails = refund_fails
        self.charges: list[Charge] = []
        self.charge_calls = 0
        self.refunds: list[Charge] = []

    async def charge(
        self, amount_cents: int, method: PaymentMethod, payer_id: str
    ) -> Result[Charge, Decline]:
        self.charge_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.hang:
            await asyncio.Event().wait()
        if self.explode:
            raise ConnectionError("connection reset by peer")
        if self.decline is not None:
            return Error(Decline(self.decline))
        charge = Charge(
            transaction_id=f"TEST_{self.charge_calls}",
            amount_cents=amount_cents,
            method=method,
            payer_id=payer_id,
        )
        self.charges.append(charge)
        return Ok(charge)

    async def refund(self, charge: Charge) -> Result[str, Decline]:
        self.refunds.append(charge)
        if self.refund_fails:
            return Error(Decline("refund refused"))
        return Ok(f"REFUND_{len(self.refunds)}")


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def item() -> Item:
    return make_item()


@pytest.fixture
def market_for() -> Callable[..., Marketplace]:
    def build(
        *items: Item,
        gateway: FakeGateway | None = None,
        policy: CheckoutPolicy | None = None,
    ) -> Marketplace:
        return Marketplace.in_memory(
            items=list(items),
            gateway=gateway or FakeGateway(),
            policy=policy,
        )

    return build


@pytest.fixture
def fast_timeout() -> CheckoutPolicy:
    return CheckoutPolicy().with_gateway_timeout(delta=timedelta(milliseconds=50))


@pytest.fixture
async def session_factory() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    factory, engine = await create_database()
    yield factory
    await engine.dispose()


def ok[T](result: Result[T, Any]) -> T:
    match result:
        case Ok(value):
            return value
        case Error(e):
            raise AssertionError(f"expected Ok, got Error({e!r})")


def err[E](result: Result[Any, E]) -> E:
    match result:
        case Error(e):
            return e
        case Ok(value):
            raise AssertionError(f"expected Error, got Ok({value!r})")
