"""
HTTP-level tests: authentication, JSON shapes and status codes of every blueprint.
"""

from datetime import timedelta

import pytest

from conftest import TEST_PASSWORD, auth_headers
from pos.extensions import db
from pos.models import SessionToken
from pos.services import session_service
from pos.time_utils import utcnow


class TestAuth:
    @pytest.mark.parametrize("method,path", [
        ("get", "/api/products"),
        ("get", "/api/cart"),
        ("post", "/api/transactions/checkout"),
        ("get", "/api/settings"),
        ("get", "/api/analytics/summary"),
    ])
    def test_requires_token(self, client, db_session, method, path):
        response = getattr(client, method)(path)
        assert response.status_code == 401

    def test_invalid_token(self, client, db_session):
        response = client.get("/api/cart", headers=auth_headers("not-a-real-token"))
        assert response.status_code == 401
        assert response.get_json()["error"] == "Invalid or expired token"

    def test_register_login_logout(self, client, db_session):
        response = client.post("/api/auth/register", json={
            "username": "cashier1",
            "password": TEST_PASSWORD,
            "email": "cashier1@pos.local",
        })
        assert response.status_code == 201
        body = response.get_json()
        assert body["user"]["username"] == "cashier1"
        assert body["settings"]["currency"] == "USD"
        assert body["token"]

        response = client.post("/api/auth/login", json={"username": "cashier1", "password": TEST_PASSWORD})
        assert response.status_code == 200
        headers = auth_headers(response.get_json()["token"])

        me = client.get("/api/auth/me", headers=headers)
        assert me.status_code == 200
        assert me.get_json()["user"]["username"] == "cashier1"

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_register_duplicate(self, client, user_a):
        response = client.post("/api/auth/register", json={"username": "user_a", "password": TEST_PASSWORD})
        assert response.status_code == 409

    def test_register_weak_password(self, client, db_session):
        response = client.post("/api/auth/register", json={"username": "weak", "password": "short"})
        assert response.status_code == 400
        assert response.get_json()["code"] == "WEAK_PASSWORD"

    def test_login_wrong_password(self, client, user_a):
        response = client.post("/api/auth/login", json={"username": "user_a", "password": "Wrong123!!"})
        assert response.status_code == 401

    def test_idle_session_is_revoked(self, client, user_a):
        record, token = session_service.create_session(user_a.id)
        record.last_used_at = utcnow() - timedelta(hours=3)
        db.session.commit()

        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 401
        db.session.expire_all()
        assert db.session.get(SessionToken, record.id).is_revoked is True


class TestProducts:
    def test_crud(self, client, headers_a):
        response = client.post("/api/products", headers=headers_a, json={
            "name": "Coffee",
            "price_cents": 350,
            "category": "Beverages",
            "inventory": 12,
        })
        assert response.status_code == 201
        product = response.get_json()
        assert product["inventory"] == 12

        response = client.patch(f"/api/products/{product['id']}", headers=headers_a, json={"price_cents": 400})
        assert response.status_code == 200
        assert response.get_json()["price_cents"] == 400

        listing = client.get("/api/products?search=coff", headers=headers_a).get_json()
        assert [item["name"] for item in listing["items"]] == ["Coffee"]

        assert client.delete(f"/api/products/{product['id']}", headers=headers_a).status_code == 200
        assert client.get(f"/api/products/{product['id']}", headers=headers_a).status_code == 404

    def test_inventory_defaults_to_zero(self, client, headers_a):
        response = client.post("/api/products", headers=headers_a, json={
            "name": "Tea", "price_cents": 250, "category": "Beverages",
        })
        assert response.status_code == 201
        assert response.get_json()["inventory"] == 0

    @pytest.mark.parametrize("payload", [
        {"price_cents": 100, "category": "Food"},
        {"name": "Bad", "price_cents": -1, "category": "Food"},
        {"name": "Bad", "price_cents": 100, "category": "Food", "inventory": -5},
        {"name": "Bad", "price_cents": 100, "category": "Food", "owner": 1},
    ])
    def test_validation(self, client, headers_a, payload):
        response = client.post("/api/products", headers=headers_a, json=payload)
        assert response.status_code == 400
        assert response.get_json()["code"] == "VALIDATION_ERROR"

    def test_scoped_to_owner(self, client, headers_b, widget):
        assert client.get(f"/api/products/{widget.id}", headers=headers_b).status_code == 404
        listing = client.get("/api/products", headers=headers_b).get_json()
        assert listing["items"] == []

    def test_category_filter_and_pagination(self, client, headers_a, widget, gadget):
        listing = client.get("/api/products?category=Electronics", headers=headers_a).get_json()
        assert [item["id"] for item in listing["items"]] == [gadget.id]

        everything = client.get("/api/products?category=All", headers=headers_a).get_json()
        assert everything["count"] == 2

        page = client.get("/api/products?page=1&per_page=1", headers=headers_a).get_json()
        assert page["count"] == 1
        assert page["pagination"]["has_next"] is True

    def test_negative_page_size_is_clamped(self, client, headers_a, widget, gadget):
        page = client.get("/api/products?page=1&per_page=-5", headers=headers_a).get_json()
        assert page["pagination"]["per_page"] == 1
        assert page["count"] == 1
        assert page["pagination"]["total_pages"] == 2

    def test_restock(self, client, headers_a, widget):
        response = client.post(f"/api/products/{widget.id}/restock", headers=headers_a, json={"quantity": 3})
        assert response.status_code == 200
        assert response.get_json()["inventory"] == 8

        response = client.post(f"/api/products/{widget.id}/restock", headers=headers_a, json={"quantity": 0})
        assert response.status_code == 400


class TestCategories:
    def test_create_list_delete(self, client, headers_a, headers_b):
        response = client.post("/api/categories", headers=headers_a, json={"name": "Snacks"})
        assert response.status_code == 201
        category = response.get_json()
        assert category["is_global"] is False

        duplicate = client.post("/api/categories", headers=headers_a, json={"name": "Snacks"})
        assert duplicate.status_code == 409

        names_b = [c["name"] for c in client.get("/api/categories", headers=headers_b).get_json()["items"]]
        assert "Snacks" not in names_b

        assert client.delete(f"/api/categories/{category['id']}", headers=headers_b).status_code == 404
        assert client.delete(f"/api/categories/{category['id']}", headers=headers_a).status_code == 200

    def test_blank_name(self, client, headers_a):
        response = client.post("/api/categories", headers=headers_a, json={"name": "  "})
        assert response.status_code == 400


class TestNonObjectBodies:
    @pytest.mark.parametrize("method,path", [
        ("post", "/api/auth/register"),
        ("post", "/api/auth/login"),
        ("post", "/api/products"),
        ("patch", "/api/products/1"),
        ("post", "/api/products/1/restock"),
        ("post", "/api/categories"),
        ("post", "/api/cart"),
        ("put", "/api/cart/1"),
        ("patch", "/api/cart/1"),
        ("post", "/api/cart/preview"),
        ("post", "/api/transactions/checkout"),
        ("post", "/api/transactions/hold"),
        ("post", "/api/transactions/1/complete"),
        ("post", "/api/transactions/1/cancel"),
        ("patch", "/api/settings"),
    ])
    @pytest.mark.parametrize("body", [[1], "x", 5])
    def test_rejected_as_validation_error(self, client, headers_a, method, path, body):
        response = getattr(client, method)(path, json=body, headers=headers_a)

        assert response.status_code == 400
        assert response.get_json() == {"error": "Invalid JSON payload", "code": "VALIDATION_ERROR"}


class TestCartEndpoints:
    def test_add_update_remove(self, client, headers_a, widget):
        response = client.post("/api/cart", headers=headers_a, json={"product_id": widget.id, "quantity": 2})
        assert response.status_code == 201
        line = response.get_json()["item"]
        assert line["quantity"] == 2
        assert line["unit_price_cents"] == 1000

        cart = client.get("/api/cart", headers=headers_a).get_json()
        assert cart["count"] == 1
        assert cart["totals"]["subtotal_cents"] == 2000
        assert cart["totals"]["tax_cents"] == 160
        assert cart["currency"] == "USD"

        response = client.patch(f"/api/cart/{line['id']}", headers=headers_a, json={"delta": 1})
        assert response.get_json()["item"]["quantity"] == 3

        response = client.put(f"/api/cart/{line['id']}", headers=headers_a, json={"quantity": 0})
        assert response.get_json()["removed"] is True
        assert client.get("/api/cart", headers=headers_a).get_json()["items"] == []

    def test_out_of_stock_body(self, client, headers_a, widget):
        response = client.post("/api/cart", headers=headers_a, json={"product_id": widget.id, "quantity": 50})
        assert response.status_code == 409
        body = response.get_json()
        assert body["code"] == "OUT_OF_STOCK"
        assert body["details"]["available"] == 5

    @pytest.mark.parametrize("payload", [
        {},
        {"product_id": "abc"},
        {"product_id": 1, "quantity": 0},
        {"product_id": 1, "quantity": 1.5},
    ])
    def test_bad_add_payload(self, client, headers_a, payload):
        response = client.post("/api/cart", headers=headers_a, json=payload)
        assert response.status_code == 400

    def test_unknown_line(self, client, headers_a):
        assert client.delete("/api/cart/424242", headers=headers_a).status_code == 404

    def test_preview_with_discount(self, client, headers_a, widget, gadget):
        client.post("/api/cart", headers=headers_a, json={"product_id": widget.id, "quantity": 2})
        client.post("/api/cart", headers=headers_a, json={"product_id": gadget.id, "quantity": 1})

        response = client.post("/api/cart/preview", headers=headers_a, json={
            "discount": {"kind": "percentage", "value": 10},
        })
        totals = response.get_json()["totals"]
        assert totals["discount_cents"] == 250
        assert totals["tax_cents"] == 180
        assert totals["total_cents"] == 2430

    def test_preview_rejects_large_percentage(self, client, headers_a):
        response = client.post("/api/cart/preview", headers=headers_a, json={
            "discount": {"kind": "percentage", "value": 150},
        })
        assert response.status_code == 400

    def test_clear(self, client, headers_a, widget):
        client.post("/api/cart", headers=headers_a, json={"product_id": widget.id})
        response = client.delete("/api/cart", headers=headers_a)
        assert response.get_json()["removed"] == 1


class TestTransactionEndpoints:
    def test_checkout_and_receipt(self, client, headers_a, widget):
        client.post("/api/cart", headers=headers_a, json={"product_id": widget.id, "quantity": 2})

        response = client.post("/api/transactions/checkout", headers=headers_a, json={
            "payment_method": "cash",
            "amount_tendered_cents": 3000,
        })
        assert response.status_code == 201
        tx = response.get_json()["transaction"]
        assert tx["status"] == "completed"
        assert tx["total_cents"] == 2160
        assert tx["change_due_cents"] == 840
        assert len(tx["items"]) == 1

        receipt = client.get(f"/api/transactions/{tx['id']}/receipt", headers=headers_a).get_json()
        assert receipt["transaction_id"] == tx["id"]
        assert receipt["totals"]["tax_cents"] == 160
        assert receipt["items"][0]["name"] == "Widget"
        assert receipt["payment"]["change_due_cents"] == 840

        listing = client.get("/api/transactions", headers=headers_a).get_json()
        assert [item["id"] for item in listing["items"]] == [tx["id"]]

    def test_empty_cart(self, client, headers_a):
        response = client.post("/api/transactions/checkout", headers=headers_a, json={"payment_method": "card"})
        assert response.status_code == 409
        assert response.get_json()["code"] == "EMPTY_CART"

    def test_missing_payment_method(self, client, headers_a, widget):
        client.post("/api/cart", headers=headers_a, json={"product_id": widget.id})
        response = client.post("/api/transactions/checkout", headers=headers_a, json={})
        assert response.status_code == 400
        assert response.get_json()["field"] == "payment_method"

    def test_hold_complete_cancel(self, client, headers_a, widget):
        client.post("/api/cart", headers=headers_a, json={"product_id": widget.id, "quantity": 1})

        held = client.post("/api/transactions/hold", headers=headers_a, json={}).get_json()["transaction"]
        assert held["status"] == "held"

        response = client.post(f"/api/transactions/{held['id']}/complete", headers=headers_a, json={
            "payment_method": "card",
        })
        assert response.get_json()["transaction"]["status"] == "completed"

        response = client.post(f"/api/transactions/{held['id']}/cancel", headers=headers_a, json={"restock": "yes"})
        assert response.status_code == 400

        response = client.post(f"/api/transactions/{held['id']}/cancel", headers=headers_a, json={"restock": True})
        assert response.status_code == 200
        assert response.get_json()["transaction"]["status"] == "canceled"

        response = client.post(f"/api/transactions/{held['id']}/cancel", headers=headers_a, json={})
        assert response.status_code == 409
        assert response.get_json()["code"] == "INVALID_TRANSITION"

        product = client.get(f"/api/products/{widget.id}", headers=headers_a).get_json()
        assert product["inventory"] == 5

    def test_other_users_transaction(self, client, headers_a, headers_b, widget):
        client.post("/api/cart", headers=headers_a, json={"product_id": widget.id})
        tx = client.post("/api/transactions/checkout", headers=headers_a, json={
            "payment_method": "card",
        }).get_json()["transaction"]

        assert client.get(f"/api/transactions/{tx['id']}", headers=headers_b).status_code == 404
        assert client.get(f"/api/transactions/{tx['id']}/receipt", headers=headers_b).status_code == 404

    def test_bad_list_window(self, client, headers_a):
        response = client.get("/api/transactions?start=2026-05-02&end=2026-05-01", headers=headers_a)
        assert response.status_code == 400


class TestSettings:
    def test_get_and_patch(self, client, headers_a):
        settings = client.get("/api/settings", headers=headers_a).get_json()
        assert settings["tax_rate_bps"] == 800

        response = client.patch("/api/settings", headers=headers_a, json={
            "tax_rate_bps": 500,
            "currency": "eur",
            "store_name": "Corner Shop",
        })
        assert response.status_code == 200
        updated = response.get_json()
        assert updated["tax_rate_bps"] == 500
        assert updated["currency"] == "EUR"

    @pytest.mark.parametrize("payload", [
        {"tax_rate_bps": 5000},
        {"currency": "EURO"},
        {"is_admin": True},
    ])
    def test_rejects(self, client, headers_a, payload):
        response = client.patch("/api/settings", headers=headers_a, json=payload)
        assert response.status_code == 400

    def test_new_rate_applies_to_next_sale_only(self, client, headers_a, widget):
        client.post("/api/cart", headers=headers_a, json={"product_id": widget.id})
        first = client.post("/api/transactions/checkout", headers=headers_a, json={
            "payment_method": "card",
        }).get_json()["transaction"]

        client.patch("/api/settings", headers=headers_a, json={"tax_rate_bps": 0})

        stored = client.get(f"/api/transactions/{first['id']}", headers=headers_a).get_json()["transaction"]
        assert stored["tax_cents"] == 80

        client.post("/api/cart", headers=headers_a, json={"product_id": widget.id})
        cart = client.get("/api/cart", headers=headers_a).get_json()
        assert cart["totals"]["tax_cents"] == 0


class TestAnalytics:
    def test_summary(self, client, headers_a, widget, gadget):
        client.post("/api/cart", headers=headers_a, json={"product_id": widget.id, "quantity": 2})
        client.post("/api/transactions/checkout", headers=headers_a, json={"payment_method": "card"})

        client.post("/api/cart", headers=headers_a, json={"product_id": gadget.id, "quantity": 1})
        canceled = client.post("/api/transactions/checkout", headers=headers_a, json={
            "payment_method": "cash",
        }).get_json()["transaction"]
        client.post(f"/api/transactions/{canceled['id']}/cancel", headers=headers_a, json={})

        summary = client.get("/api/analytics/summary", headers=headers_a).get_json()
        assert summary["transaction_count"] == 1
        assert summary["total_sales_cents"] == 2160
        assert summary["top_products"][0]["product_id"] == widget.id
        assert summary["status_counts"]["canceled"] == 1
        assert len(summary["hourly_distribution"]) == 24

    def test_bad_window(self, client, headers_a):
        response = client.get("/api/analytics/summary?start=bogus", headers=headers_a)
        assert response.status_code == 400

    def test_bad_window_names_end(self, client, headers_a):
        response = client.get("/api/analytics/summary?start=2026-01-01&end=bogus", headers=headers_a)
        assert response.status_code == 400
        assert response.get_json()["field"] == "end"


class TestSystem:
    def test_health(self, client, db_session):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.get_json()["status"] == "healthy"

    def test_version(self, client):
        assert client.get("/api/version").status_code == 200
