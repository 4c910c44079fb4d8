"""Integration tests for Order and Payment API endpoints via TestClient."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from ordering.api.errors import register_exception_handlers
from ordering.api.routes import cart_router, order_router, payment_router
from ordering.order.order import Order
from protean import current_domain


@pytest.fixture()
def client(catalogue, coupons, gateway):
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(cart_router)
    app.include_router(order_router)
    app.include_router(payment_router)
    return TestClient(app)


def _place_order(client, address, payment_method="cod", user_id="user-001"):
    client.post(f"/carts/{user_id}/items", json={"product_id": "prod-milk", "quantity": 2})
    client.post(f"/carts/{user_id}/items", json={"product_id": "prod-biryani", "quantity": 1})
    response = client.post(
        "/orders",
        json={"user_id": user_id, "shipping_address": address, "payment_method": payment_method},
    )
    assert response.status_code == 201
    return response.json()


def _set_status(client, order_id, status, **extra):
    return client.put(f"/orders/{order_id}/status", json={"status": status, **extra})


class TestPlaceOrderEndpoint:
    def test_place_order(self, client, address):
        body = _place_order(client, address)

        assert body["order_id"].startswith("ORD-")
        assert body["status"] == "pending"
        assert body["price_summary"]["final_total"] == 482.0
        assert body["payment_info"]["method"] == "cod"
        assert len(body["items"]) == 2
        assert body["timeline"]["order_created"] is not None

    def test_cart_is_emptied(self, client, address):
        _place_order(client, address)
        assert client.get("/carts/user-001").json()["items"] == []

    def test_empty_cart(self, client, address):
        client.get("/carts/user-001")
        response = client.post(
            "/orders",
            json={"user_id": "user-001", "shipping_address": address, "payment_method": "cod"},
        )
        assert response.status_code in (400, 404)

    def test_invalid_payment_method(self, client, address):
        response = client.post(
            "/orders",
            json={"user_id": "user-001", "shipping_address": address, "payment_method": "barter"},
        )
        assert response.status_code == 422

    def test_get_order(self, client, address):
        order_id = _place_order(client, address)["order_id"]

        response = client.get(f"/orders/{order_id}")

        assert response.status_code == 200
        assert response.json()["order_id"] == order_id

    def test_get_unknown_order(self, client):
        assert client.get("/orders/ORD-0-0000").status_code == 404


class TestStatusEndpoint:
    def test_advance_order(self, client, address):
        order_id = _place_order(client, address)["order_id"]

        assert _set_status(client, order_id, "confirmed").status_code == 200
        response = _set_status(client, order_id, "Under Progress")

        assert response.status_code == 200
        assert response.json()["status"] == "processing"

    def test_skip_returns_conflict(self, client, address):
        order_id = _place_order(client, address)["order_id"]
        _set_status(client, order_id, "confirmed")

        response = _set_status(client, order_id, "shipped")

        assert response.status_code == 409
        assert "processing" in response.json()["message"]

    def test_unknown_status(self, client, address):
        order_id = _place_order(client, address)["order_id"]
        assert _set_status(client, order_id, "teleported").status_code == 400

    def test_item_update(self, client, address):
        order = _place_order(client, address)
        item_id = order["items"][0]["item_id"]

        response = _set_status(client, order["order_id"], "confirmed", item_id=item_id)

        items = {i["item_id"]: i["item_status"] for i in response.json()["items"]}
        assert items[item_id] == "confirmed"
        assert list(items.values()).count("pending") == 1

    def test_timeline(self, client, address):
        order_id = _place_order(client, address)["order_id"]
        _set_status(client, order_id, "confirmed")

        body = client.get(f"/orders/{order_id}/timeline").json()

        assert body["current_status"] == "confirmed"
        assert [s["completed"] for s in body["steps"]] == [True, False, False, False]


class TestCancelAndReturnEndpoints:
    def test_cancel(self, client, address):
        order_id = _place_order(client, address)["order_id"]

        response = client.post(f"/orders/{order_id}/cancel", json={"reason": "Ordered twice"})

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

    def test_cancel_too_late(self, client, address):
        order_id = _place_order(client, address)["order_id"]
        _set_status(client, order_id, "confirmed")
        _set_status(client, order_id, "processing")

        response = client.post(f"/orders/{order_id}/cancel", json={})
        assert response.status_code == 400

    def test_return(self, client, address):
        order_id = _place_order(client, address)["order_id"]
        for status in ("confirmed", "processing", "shipped", "delivered"):
            _set_status(client, order_id, status)

        response = client.post(f"/orders/{order_id}/return", json={"reason": "Damaged"})

        assert response.status_code == 200
        assert response.json()["status"] == "returned"


class TestPaymentEndpoints:
    def test_initiate_and_verify(self, client, address):
        order_id = _place_order(client, address, payment_method="card")["order_id"]

        response = client.post(f"/orders/{order_id}/payment")
        assert response.status_code == 200
        intent = response.json()
        assert intent["amount"] == 482.0
        assert intent["client_secret"]

        response = client.post(f"/orders/{order_id}/payment/verify")
        assert response.status_code == 200
        assert response.json()["payment_info"]["status"] == "completed"
        assert response.json()["status"] == "confirmed"

    def test_payment_status(self, client, address):
        order_id = _place_order(client, address, payment_method="upi")["order_id"]
        client.post(f"/orders/{order_id}/payment")

        body = client.get(f"/orders/{order_id}/payment").json()
        assert body["status"] == "pending"
        assert body["intent_status"] == "requires_payment_method"

    def test_gateway_outage(self, client, address, gateway):
        order_id = _place_order(client, address, payment_method="upi")["order_id"]
        gateway.configure(should_succeed=False, failure_reason="Gateway timeout")

        response = client.post(f"/orders/{order_id}/payment")

        assert response.status_code == 502
        assert response.json()["message"] == "Gateway timeout"

    def test_refund(self, client, address):
        order_id = _place_order(client, address, payment_method="upi")["order_id"]
        client.post(f"/orders/{order_id}/payment")
        client.post(f"/orders/{order_id}/payment/verify")

        response = client.post(f"/orders/{order_id}/refund", json={"amount": 100.0, "reason": "Late delivery"})

        assert response.status_code == 200
        assert response.json()["payment_info"]["status"] == "refunded"
        assert response.json()["payment_info"]["refund_amount"] == 100.0
        assert current_domain.repository_for(Order).get(order_id).status == "cancelled"

    def test_refund_cod(self, client, address):
        order_id = _place_order(client, address, payment_method="cod")["order_id"]
        response = client.post(f"/orders/{order_id}/refund", json={})
        assert response.status_code == 400
