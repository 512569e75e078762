"""
Database layer — SQLAlchemy tables and session factory.

Every remote table the marketplace talks to lives here. Stores in
``bazaar.inventory``, ``bazaar.orders``, ``bazaar.payments``,
``bazaar.attempts`` and ``bazaar.social`` map rows to frozen domain
dataclasses and never leak these models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ═══════════════════════════════════════════════════════════════════════════════
# Base
# ═══════════════════════════════════════════════════════════════════════════════


class Base(DeclarativeBase):
    pass


# ═══════════════════════════════════════════════════════════════════════════════
# Items — inventory
# ═══════════════════════════════════════════════════════════════════════════════


class ItemTable(Base):
    """
    Listed items.

    ``version`` is bumped on every stock change; optimistic writers compare it.
    """

    __tablename__ = "items"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_items_stock_non_negative"),
        CheckConstraint("price_cents > 0", name="ck_items_price_positive"),
    )

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    seller_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    category: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════


class OrderTable(Base):
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_orders_quantity_positive"),
    )

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    # No FK: orders outlive a seller deleting the listing
    item_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    buyer_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    seller_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    # Captured at creation, never re-derived from the item
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    shipping: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


# ═══════════════════════════════════════════════════════════════════════════════
# Payments & refunds
# ═══════════════════════════════════════════════════════════════════════════════


class PaymentTable(Base):
    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    order_id: Mapped[str] = mapped_column(
        String(50), ForeignKey("orders.id"), nullable=False, unique=True
    )
    user_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    method: Mapped[str] = mapped_column(String(20), nullable=False)
    reference: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class RefundTable(Base):
    """Refund obligations: a charge that must be (or was) reversed."""

    __tablename__ = "refunds"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    order_id: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    user_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    method: Mapped[str] = mapped_column(String(20), nullable=False)
    charge_reference: Mapped[str] = mapped_column(String(100), nullable=False)
    reason: Mapped[str] = mapped_column(String(30), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    refund_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


# ═══════════════════════════════════════════════════════════════════════════════
# Checkout attempts
# ═══════════════════════════════════════════════════════════════════════════════


class AttemptTable(Base):
    __tablename__ = "checkout_attempts"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    buyer_id: Mapped[str] = mapped_column(String(50), nullable=False)
    state: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    order_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    error_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


# ═══════════════════════════════════════════════════════════════════════════════
# Associations — cart, favorites, follows
# ═══════════════════════════════════════════════════════════════════════════════


class CartLineTable(Base):
    __tablename__ = "cart"
    __table_args__ = (
        UniqueConstraint("user_id", "item_id", name="uq_cart_user_item"),
        CheckConstraint("quantity >= 1", name="ck_cart_quantity_positive"),
    )

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    item_id: Mapped[str] = mapped_column(String(50), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class FavoriteTable(Base):
    __tablename__ = "favorites"
    __table_args__ = (
        UniqueConstraint("user_id", "item_id", name="uq_favorites_user_item"),
    )

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    item_id: Mapped[str] = mapped_column(String(50), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class FollowTable(Base):
    __tablename__ = "follows"
    __table_args__ = (
        UniqueConstraint("follower_id", "following_id", name="uq_follows_edge"),
        CheckConstraint("follower_id <> following_id", name="ck_follows_not_self"),
    )

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    follower_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    following_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


# ═══════════════════════════════════════════════════════════════════════════════
# Database Setup
# ═══════════════════════════════════════════════════════════════════════════════


async def create_database(
    url: str = "sqlite+aiosqlite:///:memory:",
    *,
    echo: bool = False,
) -> tuple[async_sessionmaker[AsyncSession], AsyncEngine]:
    """Create schema and return (session_factory, engine)."""
    engine = create_async_engine(url, echo=echo)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    return async_sessionmaker(engine, expire_on_commit=False), engine


def upsert_insert(session: AsyncSession) -> Any:
    """
    Dialect-specific ``insert`` supporting ``ON CONFLICT``.

    SQLite and PostgreSQL share the ``on_conflict_do_*`` API.
    """
    if session.bind is not None and session.bind.dialect.name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert as pg_insert

        return pg_insert
    from sqlalchemy.dialects.sqlite import insert as sqlite_insert

    return sqlite_insert


__all__ = (
    "Base",
    "ItemTable",
    "OrderTable",
    "PaymentTable",
    "RefundTable",
    "AttemptTable",
    "CartLineTable",
    "FavoriteTable",
    "FollowTable",
    "create_database",
    "upsert_insert",
)
