from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from bazaar.api import build_api, status_of
from bazaar.checkout import CheckoutPolicy
from bazaar.errors import InventoryRaceLost, PaymentOutcomeUnknown
from kungfu import Ok, Error

from tests.conftest import FakeGateway, make_item

ITEM = "itm_api"
SHIPPING = {
    "full_name": "Jose Rizal",
    "address": "Calamba Rd",
    "city": "Laguna",
    "postal_code": "4027",
    "phone": "09170000000",
}


@pytest.fixture
def client(market_for) -> TestClient:
    market = market_for(
        make_item(id=ITEM, stock=3, price_cents=5_000, seller_id="seller-1"),
        policy=CheckoutPolicy().with_auto_refund(False),
    )
    return TestClient(build_api(market))


def place(client: TestClient, **overrides):
    body = {
        "buyer_id": "buyer-1",
        "item_id": ITEM,
        "quantity": 1,
        "payment_method": "gcash",
        "shipping": SHIPPING,
    }
    body.update(overrides)
    return client.post("/checkout", json=body)


def test_status_mapping() -> None:
    assert status_of(Ok(object())) == 200
    assert status_of(Error(InventoryRaceLost("i", "o", 1, None, False))) == 409
    assert status_of(Error(PaymentOutcomeUnknown("card", 1, "timeout"))) == 504


def test_payment_methods(client: TestClient) -> None:
    response = client.get("/payment-methods")

    assert response.status_code == 200
    assert [m["id"] for m in response.json()["methods"]] == [
        "gcash",
        "paymaya",
        "card",
        "bank_transfer",
    ]


def test_checkout_success(client: TestClient) -> None:
    response = place(client, quantity=2)

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["order"]["status"] == "pending"
    assert body["order"]["amount_cents"] == 10_000
    assert body["order"]["shipping"]["city"] == "Laguna"


@pytest.mark.parametrize(
    ("overrides", "status", "code"),
    [
        ({"quantity": 0}, 422, "VALIDATION_ERROR"),
        ({"payment_method": "cash"}, 422, "VALIDATION_ERROR"),
        ({"item_id": "itm_nope"}, 404, "NOT_FOUND"),
        ({"quantity": 4}, 409, "OUT_OF_STOCK"),
    ],
)
def test_checkout_errors_map_to_statuses(client: TestClient, overrides, status, code) -> None:
    response = place(client, **overrides)

    assert response.status_code == status
    body = response.json()
    assert body["ok"] is False
    assert body["error"]["code"] == code


def test_declined_payment_is_402(market_for) -> None:
    market = market_for(make_item(id=ITEM), gateway=FakeGateway(decline="Bank transfer failed."))
    client = TestClient(build_api(market))

    response = place(client)

    assert response.status_code == 402
    assert response.json()["error"]["message"] == "Bank transfer failed."


def test_cancel_and_list_orders(client: TestClient) -> None:
    order_id = place(client).json()["order"]["id"]

    forbidden = client.post("/orders/cancel", json={"order_id": order_id, "buyer_id": "buyer-2"})
    assert forbidden.status_code == 403

    cancelled = client.post("/orders/cancel", json={"order_id": order_id, "buyer_id": "buyer-1"})
    assert cancelled.status_code == 200
    assert cancelled.json()["order"]["status"] == "cancelled"

    again = client.post("/orders/cancel", json={"order_id": order_id, "buyer_id": "buyer-1"})
    assert again.status_code == 409

    orders = client.get("/orders/buyer", params={"buyer_id": "buyer-1"}).json()["orders"]
    assert [o["id"] for o in orders] == [order_id]

    refunds = client.get("/refunds/open").json()["refunds"]
    assert [(r["order_id"], r["reason"]) for r in refunds] == [(order_id, "buyer_cancelled")]


def test_seller_advances_order(client: TestClient) -> None:
    order_id = place(client).json()["order"]["id"]

    confirmed = client.post(
        "/orders/advance",
        json={"order_id": order_id, "seller_id": "seller-1", "status": "confirmed"},
    )
    assert confirmed.status_code == 200
    assert confirmed.json()["order"]["status"] == "confirmed"

    wrong_seller = client.post(
        "/orders/advance",
        json={"order_id": order_id, "seller_id": "seller-2", "status": "shipped"},
    )
    assert wrong_seller.status_code == 403

    orders = client.get("/orders/seller", params={"seller_id": "seller-1"}).json()["orders"]
    assert [o["status"] for o in orders] == ["confirmed"]
