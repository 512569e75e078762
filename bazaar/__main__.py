"""
Command line demo.

    python -m bazaar methods
    python -m bazaar checkout --quantity 2 --method gcash --cancel
    python -m bazaar race --stock 1 --buyers 5
"""

from __future__ import annotations

import argparse
import asyncio
import random
from datetime import timedelta

from combinators import batch, lift as L
from kungfu import Result, Ok, Error

from bazaar._types import format_cents
from bazaar.app import Marketplace, open_marketplace
from bazaar.config import Settings, configure_logging
from bazaar.errors import CheckoutError
from bazaar.inventory import ListingDraft
from bazaar.orders import Order, ShippingInfo
from bazaar.payments import SimulatedGateway, payment_methods

SELLER = "seller-demo"
SHIPPING = ShippingInfo(
    full_name="Juan Dela Cruz",
    address="12 Mabini St",
    city="Quezon City",
    postal_code="1100",
    phone="09171234567",
)


def banner(title: str) -> None:
    print(f"\n{'─' * 50}\n{title}\n{'─' * 50}")


def describe(result: Result[Order, CheckoutError]) -> str:
    match result:
        case Ok(order):
            return f"✓ {order.id} {order.status.value} {format_cents(order.amount_cents)}"
        case Error(e):
            return f"✗ {e.code}: {e.message}"


async def _open(args: argparse.Namespace, settings: Settings) -> Marketplace:
    gateway = SimulatedGateway(
        rng=random.Random(args.seed),
        latency=timedelta(seconds=args.latency),
    )
    if args.storage == "sql":
        return await open_marketplace(settings, gateway=gateway)
    return Marketplace.in_memory(gateway=gateway, policy=settings.policy())


async def _list_item(market: Marketplace, stock: int, price_cents: int) -> str:
    draft = ListingDraft(
        title="Vintage rattan chair",
        description="Hand-woven rattan chair, lightly used, pickup or delivery.",
        price_cents=price_cents,
        stock=stock,
        category="Furniture",
    )
    match await market.listings.create(SELLER, draft):
        case Ok(item):
            print(f"Listed {item.id}: {item.title} x{item.stock} @ {format_cents(item.price_cents)}")
            return item.id
        case Error(e):
            raise SystemExit(f"Could not list demo item: {e.message}")


# ═══════════════════════════════════════════════════════════════════════════════
# Commands
# ═══════════════════════════════════════════════════════════════════════════════


async def cmd_methods(args: argparse.Namespace, settings: Settings) -> None:
    banner("Payment methods")
    for m in payment_methods():
        print(f"  [{m.id.value:13}] {m.name:18} {m.description}")


async def cmd_checkout(args: argparse.Namespace, settings: Settings) -> None:
    market = await _open(args, settings)
    try:
        banner("Checkout")
        item_id = await _list_item(market, args.stock, args.price)
        result = await market.checkout.place_order(
            args.buyer, item_id, args.quantity, args.method, SHIPPING
        )
        print(describe(result))

        match result:
            case Ok(order) if args.cancel:
                print(describe(await market.checkout.cancel_order(order.id, args.buyer)))
            case _:
                pass

        match await market.catalog.get_item(item_id):
            case Ok(item) if item is not None:
                print(f"Stock now: {item.stock}")
            case _:
                pass
    finally:
        await market.close()


async def cmd_race(args: argparse.Namespace, settings: Settings) -> None:
    market = await _open(args, settings)
    try:
        banner(f"{args.buyers} buyers, {args.stock} in stock")
        item_id = await _list_item(market, args.stock, args.price)
        outcomes: dict[str, Result[Order, CheckoutError]] = {}

        async def buy(buyer: str) -> None:
            outcomes[buyer] = await market.checkout.place_order(
                buyer, item_id, 1, args.method, SHIPPING
            )

        await batch(
            [f"buyer-{n}" for n in range(1, args.buyers + 1)],
            handler=lambda buyer: L.catching_async(lambda: buy(buyer), on_error=str),
            concurrency=args.buyers,
        )

        for buyer in sorted(outcomes):
            print(f"  {buyer:10} {describe(outcomes[buyer])}")

        match await market.catalog.get_item(item_id):
            case Ok(item) if item is not None:
                print(f"Final stock: {item.stock}")
            case _:
                pass
        match await market.open_refunds():
            case Ok(refunds):
                print(f"Open refunds: {len(refunds)}")
            case Error(e):
                print(f"Open refunds unavailable: {e.message}")
    finally:
        await market.close()


COMMANDS = {"methods": cmd_methods, "checkout": cmd_checkout, "race": cmd_race}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bazaar", description="Marketplace checkout demo")
    parser.add_argument("--storage", choices=("memory", "sql"), default="memory")
    parser.add_argument("--seed", type=int, default=None, help="gateway RNG seed")
    parser.add_argument("--latency", type=float, default=0.05, help="gateway delay, seconds")
    parser.add_argument("--log-level", default=None)
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("methods", help="list payment methods")

    checkout = sub.add_parser("checkout", help="place one order")
    checkout.add_argument("--buyer", default="buyer-1")
    checkout.add_argument("--quantity", type=int, default=1)
    checkout.add_argument("--method", default="bank_transfer")
    checkout.add_argument("--stock", type=int, default=5)
    checkout.add_argument("--price", type=int, default=149_900, help="centavos")
    checkout.add_argument("--cancel", action="store_true", help="cancel right after")

    race = sub.add_parser("race", help="concurrent buyers for scarce stock")
    race.add_argument("--buyers", type=int, default=5)
    race.add_argument("--stock", type=int, default=1)
    race.add_argument("--method", default="bank_transfer")
    race.add_argument("--price", type=int, default=149_900, help="centavos")

    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()
    configure_logging(args.log_level or settings.log_level)
    asyncio.run(COMMANDS[args.command](args, settings))


if __name__ == "__main__":
    main()
