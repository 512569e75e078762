from __future__ import annotations

from bazaar.errors import ValidationError
from bazaar.social import Cart, Favorites, FollowCounts, Follows
from bazaar.validation import MAX_QUANTITY

from tests.conftest import err, ok


async def test_adding_twice_increments_one_line(session_factory) -> None:
    cart = Cart(session_factory)

    ok(await cart.add("u1", "itm_1", 2))
    line = ok(await cart.add("u1", "itm_1", 3))

    assert line.quantity == 5
    assert len(ok(await cart.lines("u1"))) == 1
    assert ok(await cart.count("u1")) == 5


async def test_cart_rejects_bad_quantity(session_factory) -> None:
    assert isinstance(err(await Cart(session_factory).add("u1", "itm_1", 0)), ValidationError)


async def test_cart_quantity_edit_is_bounded(session_factory) -> None:
    cart = Cart(session_factory)
    ok(await cart.add("u1", "itm_1", 2))

    error = err(await cart.set_quantity("u1", "itm_1", MAX_QUANTITY + 1))

    assert isinstance(error, ValidationError)
    assert error.field == "quantity"
    assert ok(await cart.count("u1")) == 2


async def test_cart_quantity_edits_and_removal(session_factory) -> None:
    cart = Cart(session_factory)
    ok(await cart.add("u1", "itm_1"))
    ok(await cart.add("u1", "itm_2"))

    line = ok(await cart.set_quantity("u1", "itm_1", 4))
    assert line is not None and line.quantity == 4

    assert ok(await cart.set_quantity("u1", "itm_2", 0)) is None
    assert [l.item_id for l in ok(await cart.lines("u1"))] == ["itm_1"]

    assert ok(await cart.remove("u1", "itm_1")) is True
    assert ok(await cart.remove("u1", "itm_1")) is False
    assert ok(await cart.count("u1")) == 0


async def test_clear_only_touches_one_user(session_factory) -> None:
    cart = Cart(session_factory)
    ok(await cart.add("u1", "itm_1"))
    ok(await cart.add("u2", "itm_1"))

    assert ok(await cart.clear("u1")) is True
    assert ok(await cart.lines("u1")) == []
    assert ok(await cart.count("u2")) == 1


async def test_favorites_are_unique_and_toggle(session_factory) -> None:
    favorites = Favorites(session_factory)

    assert ok(await favorites.add("u1", "itm_1")) is True
    assert ok(await favorites.add("u1", "itm_1")) is False
    assert ok(await favorites.is_favorite("u1", "itm_1")) is True

    assert ok(await favorites.toggle("u1", "itm_1")) is False
    assert ok(await favorites.is_favorite("u1", "itm_1")) is False
    assert ok(await favorites.toggle("u1", "itm_1")) is True
    assert ok(await favorites.item_ids("u1")) == ["itm_1"]


async def test_follow_graph(session_factory) -> None:
    follows = Follows(session_factory)

    assert ok(await follows.follow("ana", "ben")) is True
    assert ok(await follows.follow("ana", "ben")) is False
    ok(await follows.follow("cai", "ben"))

    assert sorted(ok(await follows.followers("ben"))) == ["ana", "cai"]
    assert ok(await follows.following("ana")) == ["ben"]
    assert ok(await follows.counts("ben")) == FollowCounts(followers=2, following=0)

    assert ok(await follows.toggle("ana", "ben")) is False
    assert ok(await follows.is_following("ana", "ben")) is False
    assert ok(await follows.unfollow("ana", "ben")) is False


async def test_nobody_follows_themselves(session_factory) -> None:
    error = err(await Follows(session_factory).follow("ana", "ana"))
    assert isinstance(error, ValidationError)
    assert error.message == "Invalid following_id: you cannot follow yourself"
