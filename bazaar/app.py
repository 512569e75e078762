"""
Wiring — one object holding every store and service.

    market = await open_marketplace(Settings.from_env())
    await market.checkout.place_order(...)
    await market.close()

    # Tests and demos
    market = Marketplace.in_memory(items=[...], gateway=FakeGateway())
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncEngine

from kungfu import Result, Ok, Error

from bazaar.attempts import AttemptStore, MemoryAttemptStore, SQLAlchemyAttemptStore
from bazaar.checkout import Checkout, CheckoutPolicy
from bazaar.config import Settings
from bazaar.db import create_database
from bazaar.errors import StorageFailure, StoreError, storage_failure
from bazaar.inventory import CatalogStore, Item, MemoryInventory, SQLAlchemyInventory
from bazaar.listings import Listings
from bazaar.orders import (
    MemoryOrderStore,
    Order,
    OrderLedger,
    OrderStats,
    SQLAlchemyOrderStore,
)
from bazaar.payments import (
    Gateway,
    MemoryPaymentLedger,
    PaymentLedger,
    PaymentRecord,
    Refund,
    SQLAlchemyPaymentLedger,
    SimulatedGateway,
)
from bazaar.social import Cart, Favorites, Follows

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Social:
    cart: Cart
    favorites: Favorites
    follows: Follows


def _storage[T](operation: str, result: Result[T, StoreError]) -> Result[T, StorageFailure]:
    match result:
        case Ok(value):
            return Ok(value)
        case Error(e):
            return Error(storage_failure(operation, e))


@dataclass(slots=True)
class Marketplace:
    catalog: CatalogStore
    orders: OrderLedger
    payments: PaymentLedger
    attempts: AttemptStore
    gateway: Gateway
    checkout: Checkout
    listings: Listings
    social: Social | None = None
    engine: AsyncEngine | None = None

    @classmethod
    def assemble(
        cls,
        *,
        catalog: CatalogStore,
        orders: OrderLedger,
        payments: PaymentLedger,
        attempts: AttemptStore,
        gateway: Gateway,
        policy: CheckoutPolicy | None = None,
        social: Social | None = None,
        engine: AsyncEngine | None = None,
    ) -> Marketplace:
        checkout = Checkout(
            inventory=catalog,
            orders=orders,
            payments=payments,
            gateway=gateway,
            attempts=attempts,
            policy=policy,
        )
        return cls(
            catalog=catalog,
            orders=orders,
            payments=payments,
            attempts=attempts,
            gateway=gateway,
            checkout=checkout,
            listings=Listings(catalog),
            social=social,
            engine=engine,
        )

    @classmethod
    def in_memory(
        cls,
        *,
        items: list[Item] | None = None,
        gateway: Gateway | None = None,
        policy: CheckoutPolicy | None = None,
    ) -> Marketplace:
        """Memory stores throughout. No social features."""
        return cls.assemble(
            catalog=MemoryInventory(items),
            orders=OrderLedger(MemoryOrderStore()),
            payments=MemoryPaymentLedger(),
            attempts=MemoryAttemptStore(),
            gateway=gateway or SimulatedGateway(latency=timedelta(0)),
            policy=policy,
        )

    # ── queries ──────────────────────────────────────────────────────────────

    async def orders_for_buyer(self, buyer_id: str) -> Result[list[Order], StorageFailure]:
        return _storage("list orders", await self.orders.get_orders_by_buyer(buyer_id))

    async def orders_for_seller(self, seller_id: str) -> Result[list[Order], StorageFailure]:
        return _storage("list orders", await self.orders.get_orders_by_seller(seller_id))

    async def seller_stats(self, seller_id: str) -> Result[OrderStats, StorageFailure]:
        return _storage("seller stats", await self.orders.seller_stats(seller_id))

    async def earnings_history(self, seller_id: str) -> Result[list[Order], StorageFailure]:
        return _storage("earnings history", await self.orders.earnings_history(seller_id))

    async def payment_history(self, user_id: str) -> Result[list[PaymentRecord], StorageFailure]:
        return _storage("payment history", await self.payments.payments_by_user(user_id))

    async def open_refunds(self) -> Result[list[Refund], StorageFailure]:
        return _storage("open refunds", await self.payments.open_refunds())

    async def close(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()


async def open_marketplace(
    settings: Settings | None = None,
    *,
    gateway: Gateway | None = None,
    rng: random.Random | None = None,
) -> Marketplace:
    """SQLAlchemy-backed marketplace. Creates the schema if missing."""
    settings = settings or Settings()
    session_factory, engine = await create_database(settings.database_url)
    logger.info("Marketplace storage ready at %s", engine.url.render_as_string(hide_password=True))

    return Marketplace.assemble(
        catalog=SQLAlchemyInventory(session_factory),
        orders=OrderLedger(SQLAlchemyOrderStore(session_factory)),
        payments=SQLAlchemyPaymentLedger(session_factory),
        attempts=SQLAlchemyAttemptStore(session_factory),
        gateway=gateway or SimulatedGateway(rng=rng, latency=settings.gateway_latency),
        policy=settings.policy(),
        social=Social(
            cart=Cart(session_factory),
            favorites=Favorites(session_factory),
            follows=Follows(session_factory),
        ),
        engine=engine,
    )


__all__ = ("Marketplace", "Social", "open_marketplace")
