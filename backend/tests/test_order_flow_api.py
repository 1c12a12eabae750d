"""
End-to-end API flow: a user orders stock, the director ships it, the
user sells it to a customer on credit and records repayments.
"""

import pytest

from conftest import auth_headers, get_auth_token


@pytest.fixture
def director_headers(client, director_a):
    return auth_headers(get_auth_token(client, director_a.email))


@pytest.fixture
def user_headers(client, user_a):
    return auth_headers(get_auth_token(client, user_a.email))


def _place_order(client, headers, product_id, quantity):
    resp = client.post("/api/orders", json={"items": [{"product_id": product_id, "quantity": quantity}]},
                       headers=headers)
    assert resp.status_code == 201, resp.json
    return resp.json


class TestOrderFlow:

    def test_order_to_customer_payment(self, client, director_headers, user_headers, product_a):
        order = _place_order(client, user_headers, product_a.id, 5)
        assert order["status"] == "PENDING"
        assert order["total_amount_cents"] == 5000

        resp = client.patch("/api/director/orders", json={"order_id": order["id"], "status": "APPROVED"},
                            headers=director_headers)
        assert resp.status_code == 200
        assert resp.json["stock_movements"] == []

        resp = client.post(f"/api/director/orders/{order['id']}/ship", headers=director_headers)
        assert resp.status_code == 200
        assert resp.json["order"]["status"] == "SHIPPED"
        assert resp.json["stock_movements"][0]["new_stock"] == 45

        inventory = client.get("/api/inventory", headers=user_headers).json
        assert inventory["items"][0]["quantity_available"] == 5

        customer = client.post("/api/customers", json={"name": "Kiosk 12"}, headers=user_headers).json

        resp = client.post(f"/api/customers/{customer['id']}/orders", json={
            "product_id": product_a.id,
            "quantity": 2,
            "unit_price_cents": 1500,
            "order_date": "2026-01-10T09:00:00Z",
        }, headers=user_headers)
        assert resp.status_code == 201
        assert resp.json["total_amount_cents"] == 3000

        resp = client.post(f"/api/customers/{customer['id']}/payments", json={"amount_cents": 1000},
                           headers=user_headers)
        assert resp.status_code == 200
        assert resp.json["payment"]["amount_cents"] == 1000
        assert resp.json["customer"]["outstanding_balance_cents"] == 2000
        assert resp.json["allocations"][0]["applied_cents"] == 1000

        resp = client.post(f"/api/customers/{customer['id']}/payments", json={"amount_cents": 2001},
                           headers=user_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "InvalidAmount"

        balance = client.get("/api/balance", headers=user_headers).json
        assert balance["total_orders_cents"] == 5000

    def test_ship_short_order_reports_items(self, client, db_session, director_headers, user_headers, product_a):
        order = _place_order(client, user_headers, product_a.id, 50)
        client.patch(f"/api/products/{product_a.id}", json={"quantity": 20}, headers=director_headers)

        resp = client.post(f"/api/director/orders/{order['id']}/ship", headers=director_headers)

        assert resp.status_code == 400
        assert resp.json["error"] == "InsufficientStock"
        assert resp.json["out_of_stock_items"] == [{
            "product_id": product_a.id,
            "product_name": "Widget",
            "requested_quantity": 50,
            "available_stock": 20,
        }]

    def test_create_order_short_reports_items(self, client, user_headers, product_a):
        resp = client.post("/api/orders", json={"items": [{"product_id": product_a.id, "quantity": 51}]},
                           headers=user_headers)

        assert resp.status_code == 400
        assert resp.json["out_of_stock_items"][0]["available_stock"] == 50

    def test_invalid_transition(self, client, director_headers, user_headers, product_a):
        order = _place_order(client, user_headers, product_a.id, 1)

        resp = client.patch("/api/director/orders", json={"order_id": order["id"], "status": "DELIVERED"},
                            headers=director_headers)

        assert resp.status_code == 400
        assert resp.json["error"] == "InvalidStatus"

    def test_user_sees_only_own_orders(self, client, user_a2, user_headers, product_a):
        _place_order(client, user_headers, product_a.id, 1)
        other_headers = auth_headers(get_auth_token(client, user_a2.email))

        assert client.get("/api/orders", headers=user_headers).json["count"] == 1
        assert client.get("/api/orders", headers=other_headers).json["count"] == 0


class TestCreditApi:

    def test_director_sets_limit_and_user_pays(self, client, db_session, director_headers, user_headers, user_a):
        resp = client.post("/api/director/credit", json={"user_id": user_a.id, "credit_limit_cents": 10_000},
                           headers=director_headers)
        assert resp.status_code == 200
        assert resp.json["transaction"]["type"] == "GRANTED"

        user_a.credit_used_cents = 4_000
        db_session.commit()

        resp = client.post("/api/credit-payment", json={"amount_cents": 6_000}, headers=user_headers)
        assert resp.status_code == 201
        assert resp.json["credit_paid_cents"] == 4_000
        assert resp.json["regular_amount_cents"] == 2_000
