from __future__ import annotations

import asyncio
from datetime import timedelta

from kungfu import Result, Ok

from bazaar._types import utcnow
from bazaar.errors import StoreError
from bazaar.inventory import MemoryInventory, OptimisticInventory, SQLAlchemyInventory

from tests.conftest import make_item, ok


async def stock_of(store, item_id: str) -> int:
    match await store.get_item(item_id):
        case Ok(item) if item is not None:
            return item.stock
    raise AssertionError(f"{item_id} missing")


# ═══════════════════════════════════════════════════════════════════════════════
# Memory
# ═══════════════════════════════════════════════════════════════════════════════


async def test_decrement_takes_exactly_the_quantity() -> None:
    item = make_item(stock=5)
    store = MemoryInventory([item])

    assert ok(await store.conditional_decrement(item.id, 2)) is True
    assert await stock_of(store, item.id) == 3


async def test_decrement_never_goes_partial() -> None:
    item = make_item(stock=2)
    store = MemoryInventory([item])

    assert ok(await store.conditional_decrement(item.id, 3)) is False
    assert await stock_of(store, item.id) == 2


async def test_decrement_of_missing_item_is_false() -> None:
    assert ok(await MemoryInventory().conditional_decrement("itm_gone", 1)) is False


async def test_increment_of_missing_item_is_a_no_op() -> None:
    store = MemoryInventory()
    assert ok(await store.increment_stock("itm_gone", 3)) is None
    assert ok(await store.get_item("itm_gone")) is None


async def test_concurrent_decrements_never_oversell() -> None:
    item = make_item(stock=3)
    store = MemoryInventory([item])

    results = await asyncio.gather(
        *(store.conditional_decrement(item.id, 1) for _ in range(5))
    )

    assert sum(1 for r in results if ok(r)) == 3
    assert await stock_of(store, item.id) == 0


async def test_listing_filters_and_orders_newest_first() -> None:
    now = utcnow()
    older = make_item(seller_id="s1", category="Books", created_at=now - timedelta(hours=1))
    newer = make_item(seller_id="s1", category="Toys", created_at=now)
    other = make_item(seller_id="s2", category="Books")
    store = MemoryInventory([older, newer, other])

    match await store.list_items(seller_id="s1"):
        case Ok(items):
            assert [i.id for i in items] == [newer.id, older.id]
    match await store.list_items(category="Books"):
        case Ok(items):
            assert {i.id for i in items} == {older.id, other.id}


# ═══════════════════════════════════════════════════════════════════════════════
# Optimistic
# ═══════════════════════════════════════════════════════════════════════════════


class ContendedInventory(MemoryInventory):
    """Another writer bumps the version before the first ``conflicts`` swaps."""

    def __init__(self, items, conflicts: int) -> None:
        super().__init__(items)
        self.conflicts = conflicts
        self.swaps = 0

    async def compare_and_set_stock(
        self, item_id: str, expected_version: int, new_stock: int
    ) -> Result[bool, StoreError]:
        self.swaps += 1
        if self.swaps <= self.conflicts:
            await self.increment_stock(item_id, 0)
        return await super().compare_and_set_stock(item_id, expected_version, new_stock)


async def test_optimistic_retries_past_a_version_conflict() -> None:
    item = make_item(stock=4)
    store = ContendedInventory([item], conflicts=1)
    inventory = OptimisticInventory(store, attempts=3)

    assert ok(await inventory.conditional_decrement(item.id, 3)) is True
    assert store.swaps == 2
    assert await stock_of(inventory, item.id) == 1


async def test_optimistic_gives_up_after_bounded_attempts() -> None:
    item = make_item(stock=4)
    store = ContendedInventory([item], conflicts=10)
    inventory = OptimisticInventory(store, attempts=3)

    assert ok(await inventory.conditional_decrement(item.id, 1)) is False
    assert store.swaps == 3
    assert await stock_of(inventory, item.id) == 4


async def test_optimistic_refuses_without_touching_stock_when_short() -> None:
    item = make_item(stock=1)
    store = ContendedInventory([item], conflicts=0)
    inventory = OptimisticInventory(store)

    assert ok(await inventory.conditional_decrement(item.id, 2)) is False
    assert store.swaps == 0


# ═══════════════════════════════════════════════════════════════════════════════
# SQLAlchemy
# ═══════════════════════════════════════════════════════════════════════════════


async def test_sql_conditional_decrement(session_factory) -> None:
    store = SQLAlchemyInventory(session_factory)
    item = make_item(stock=3)
    await store.add_item(item)

    assert ok(await store.conditional_decrement(item.id, 2)) is True
    assert ok(await store.conditional_decrement(item.id, 2)) is False
    assert await stock_of(store, item.id) == 1


async def test_sql_increment_and_missing_item(session_factory) -> None:
    store = SQLAlchemyInventory(session_factory)
    item = make_item(stock=0)
    await store.add_item(item)

    assert ok(await store.increment_stock(item.id, 4)) is None
    assert ok(await store.increment_stock("itm_gone", 4)) is None
    assert await stock_of(store, item.id) == 4
    assert ok(await store.conditional_decrement("itm_gone", 1)) is False


async def test_sql_version_compare_and_set(session_factory) -> None:
    store = SQLAlchemyInventory(session_factory)
    item = make_item(stock=5)
    await store.add_item(item)

    match await store.read_versioned(item.id):
        case Ok((stock, version)):
            assert stock == 5
        case other:
            raise AssertionError(other)

    assert ok(await store.compare_and_set_stock(item.id, version, 2)) is True
    assert ok(await store.compare_and_set_stock(item.id, version, 1)) is False
    assert await stock_of(store, item.id) == 2


async def test_sql_optimistic_wrapper(session_factory) -> None:
    store = SQLAlchemyInventory(session_factory)
    item = make_item(stock=2)
    await store.add_item(item)
    inventory = OptimisticInventory(store)

    assert ok(await inventory.conditional_decrement(item.id, 2)) is True
    assert ok(await inventory.conditional_decrement(item.id, 1)) is False


async def test_sql_update_and_delete(session_factory) -> None:
    store = SQLAlchemyInventory(session_factory)
    item = make_item(stock=2)
    await store.add_item(item)

    match await store.update_item(item.id, {"stock": 9, "title": "Split keyboard"}):
        case Ok(updated) if updated is not None:
            assert updated.stock == 9
            assert updated.title == "Split keyboard"
            assert updated.price_cents == item.price_cents
        case other:
            raise AssertionError(other)

    assert ok(await store.delete_item(item.id)) is True
    assert ok(await store.delete_item(item.id)) is False
    assert ok(await store.update_item(item.id, {"stock": 1})) is None
