"""Tests for the FastAPI API."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal


def order_body(seed, items, voucher_code=None):
    return {
        "items": [{"variant_id": v.id, "quantity": q} for v, q in items],
        "address_id": seed.home.id,
        "payment_method_id": seed.cod.id,
        "voucher_code": voucher_code,
    }


def place_order(client, seed, headers, items, voucher_code=None):
    response = client.post("/orders", json=order_body(seed, items, voucher_code), headers=headers.alice)
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestHealthCheck:
    def test_health(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestAuth:
    def test_register_login_refresh_logout(self, client, seed):
        response = client.post(
            "/auth/register",
            json={"username": "carol@shopmail.com", "password": "long-enough-pw", "full_name": "Carol"},
        )
        assert response.status_code == 201
        assert response.json()["data"]["role"] == "customer"

        response = client.post("/auth/login", json={"username": "carol@shopmail.com", "password": "long-enough-pw"})
        assert response.status_code == 200
        tokens = response.json()
        access = {"Authorization": f"Bearer {tokens['access_token']}"}
        assert client.get("/users/me", headers=access).json()["data"]["username"] == "carol@shopmail.com"

        rotated = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert rotated.status_code == 200
        assert rotated.json()["refresh_token"] != tokens["refresh_token"]

        reused = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert reused.status_code == 401

        assert client.post("/auth/logout", headers=access).status_code == 200
        assert client.get("/users/me", headers=access).status_code == 401

    def test_duplicate_registration(self, client, seed):
        response = client.post(
            "/auth/register", json={"username": "alice@shopmail.com", "password": "long-enough-pw"}
        )
        assert response.status_code == 400
        assert response.json()["code"] == "DUPLICATE"

    def test_bad_credentials(self, client, seed):
        response = client.post("/auth/login", json={"username": "alice@shopmail.com", "password": "wrong-password"})
        assert response.status_code == 401

    def test_missing_token(self, client, seed):
        assert client.get("/orders").status_code == 401

    def test_admin_only_routes(self, client, seed, headers):
        assert client.get("/users/", headers=headers.alice).status_code == 403
        response = client.get("/users/", headers=headers.admin)
        assert response.status_code == 200
        assert len(response.json()["data"]) == 3


class TestCatalog:
    def test_product_list_is_paginated(self, client, seed):
        response = client.get("/products", params={"page": 1, "limit": 5})
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["page"] == 1
        assert data["limit"] == 5
        assert data["totalItems"] == 1
        assert data["totalPages"] == 1
        assert data["items"][0]["name"] == "Linen Shirt"

    def test_limit_is_capped(self, client, seed):
        response = client.get("/products", params={"limit": 1000})
        assert response.json()["data"]["limit"] == 100

    def test_product_detail_lists_active_variants(self, client, seed, headers):
        client.delete(f"/product-variants/{seed.blue.id}", headers=headers.admin)
        response = client.get(f"/products/{seed.product.id}")
        assert response.status_code == 200
        colors = {v["color"] for v in response.json()["data"]["variants"]}
        assert colors == {"red", "green"}

    def test_unknown_product(self, client, seed):
        response = client.get("/products/999")
        assert response.status_code == 404
        assert response.json()["code"] == "PRODUCT_NOT_FOUND"

    def test_create_product_requires_admin(self, client, seed, headers):
        body = {"name": "Wool Scarf", "category": "accessories", "base_price": "120000"}
        assert client.post("/products", json=body, headers=headers.alice).status_code == 403

        response = client.post("/products", json=body, headers=headers.admin)
        assert response.status_code == 201
        assert response.json()["data"]["name"] == "Wool Scarf"

        duplicate = client.post("/products", json=body, headers=headers.admin)
        assert duplicate.status_code == 400
        assert duplicate.json()["code"] == "DUPLICATE"

    def test_new_products_flags_fresh_entries(self, client, seed):
        response = client.get("/products/new")
        assert response.status_code == 200
        entries = response.json()["data"]
        assert len(entries) == 1
        assert entries[0]["is_really_new"] is True

    def test_variant_filters(self, client, seed):
        response = client.get("/product-variants", params={"min_price": "120000", "max_stock": 5})
        assert response.status_code == 200
        assert [v["color"] for v in response.json()["data"]["items"]] == ["blue"]

        response = client.get(f"/product-variants/product/{seed.product.id}")
        assert len(response.json()["data"]) == 3

    def test_stock_adjustment(self, client, seed, headers):
        url = f"/product-variants/{seed.blue.id}/stock"

        response = client.patch(url, json={"quantity_change": 4, "operation": "increase"}, headers=headers.admin)
        assert response.status_code == 200
        assert response.json()["data"]["stock"] == 5

        response = client.patch(url, json={"quantity_change": 6, "operation": "decrease"}, headers=headers.admin)
        assert response.status_code == 400
        assert response.json()["code"] == "OUT_OF_STOCK"

        response = client.patch(url, json={"quantity_change": 5, "operation": "decrease"}, headers=headers.admin)
        assert response.json()["data"]["stock"] == 0

    def test_stock_adjustment_rejects_non_positive(self, client, seed, headers):
        response = client.patch(
            f"/product-variants/{seed.blue.id}/stock",
            json={"quantity_change": 0, "operation": "increase"},
            headers=headers.admin,
        )
        assert response.status_code == 422


class TestVouchers:
    def test_apply_preview(self, client, seed, headers):
        response = client.post("/vouchers/apply", json={"code": "save20", "subtotal": "500000"}, headers=headers.alice)
        assert response.status_code == 200
        data = response.json()["data"]
        assert Decimal(data["discount_amount"]) == Decimal("80000")
        assert data["remaining_uses"] == 1

    def test_apply_unknown_code(self, client, seed, headers):
        response = client.post("/vouchers/apply", json={"code": "NOPE", "subtotal": "500000"}, headers=headers.alice)
        assert response.status_code == 404
        assert response.json()["code"] == "VOUCHER_NOT_FOUND"

    def test_create_rejects_inverted_dates(self, client, seed, headers):
        now = datetime.now(timezone.utc)
        body = {
            "code": "BROKEN",
            "discount_percent": "10",
            "start_date": now.isoformat(),
            "end_date": (now - timedelta(days=1)).isoformat(),
        }
        response = client.post("/vouchers", json=body, headers=headers.admin)
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_DATE_RANGE"

    def test_update_rejects_null_for_required_fields(self, client, seed, headers):
        url = f"/vouchers/{seed.voucher.id}"
        for field in ("code", "maximum_discount_amount", "start_date", "discount_percent"):
            response = client.put(url, json={field: None}, headers=headers.admin)
            assert response.status_code == 422, field

        data = client.get(url, headers=headers.admin).json()["data"]
        assert data["code"] == "SAVE20"
        assert Decimal(data["maximum_discount_amount"]) == Decimal("80000")

    def test_update_may_clear_maximum_order_value(self, client, seed, headers):
        url = f"/vouchers/{seed.voucher.id}"
        response = client.put(url, json={"maximum_order_value": "900000"}, headers=headers.admin)
        assert response.status_code == 200
        response = client.put(url, json={"maximum_order_value": None}, headers=headers.admin)
        assert response.status_code == 200
        assert response.json()["data"]["maximum_order_value"] is None

    def test_delete_and_reactivate(self, client, seed, headers):
        url = f"/vouchers/{seed.voucher.id}"
        assert client.put(f"{url}/reactivate", headers=headers.admin).status_code == 409

        assert client.delete(url, headers=headers.admin).status_code == 200
        assert client.get(url, headers=headers.admin).status_code == 404

        response = client.put(f"{url}/reactivate", headers=headers.admin)
        assert response.status_code == 200
        assert response.json()["data"]["is_active"] is True

    def test_list_requires_admin(self, client, seed, headers):
        assert client.get("/vouchers", headers=headers.alice).status_code == 403
        response = client.get("/vouchers", headers=headers.admin)
        assert response.json()["data"]["totalItems"] == 1


class TestAddresses:
    def test_unknown_province_rejected(self, client, seed, headers):
        body = {"full_name": "Alice", "phone": "0901234567", "address_line": "1 Nowhere Lane", "province": "zz"}
        response = client.post("/addresses", json=body, headers=headers.alice)
        assert response.status_code == 400
        assert response.json()["code"] == "UNRESOLVABLE_ADDRESS"

    def test_new_default_replaces_old(self, client, seed, headers):
        body = {
            "full_name": "Alice", "phone": "0901234567", "address_line": "99 Le Loi Street",
            "province": "HCM", "is_default": True,
        }
        response = client.post("/addresses", json=body, headers=headers.alice)
        assert response.status_code == 201
        assert response.json()["data"]["province"] == "hcm"

        addresses = client.get("/addresses", headers=headers.alice).json()["data"]
        assert [a["is_default"] for a in addresses] == [True, False]
        assert addresses[0]["province"] == "hcm"

    def test_cannot_read_others_address(self, client, seed, headers):
        response = client.get(f"/addresses/{seed.home.id}", headers=headers.bob)
        assert response.status_code == 404


class TestCustomerOrders:
    def test_calculate_total(self, client, seed, headers):
        body = order_body(seed, [(seed.red, 2)], "SAVE20")
        del body["payment_method_id"]
        response = client.post("/orders/calculate-total", json=body, headers=headers.alice)
        assert response.status_code == 200
        data = response.json()["data"]
        assert Decimal(data["subtotal"]) == Decimal("500000")
        assert Decimal(data["shipping_fee"]) == Decimal("30000")
        assert Decimal(data["discount_amount"]) == Decimal("80000")
        assert Decimal(data["final_total"]) == Decimal("450000")

    def test_shipping_fee_for_address(self, client, seed, headers):
        response = client.get(f"/orders/shipping-fee/{seed.faraway.id}", headers=headers.bob)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["zone"] == "remote"
        assert Decimal(data["fee"]) == Decimal("50000")

    def test_create_and_fetch(self, client, seed, headers):
        order = place_order(client, seed, headers, [(seed.red, 2)], "SAVE20")
        assert order["status"] == "pending"
        assert Decimal(order["final_total"]) == Decimal("450000")

        response = client.get(f"/orders/{order['id']}", headers=headers.alice)
        assert response.status_code == 200
        assert response.json()["data"]["order_code"] == order["order_code"]

        response = client.get(f"/orders/{order['id']}", headers=headers.bob)
        assert response.status_code == 404
        assert response.json()["code"] == "ORDER_NOT_FOUND"

    def test_empty_order(self, client, seed, headers):
        response = client.post("/orders", json=order_body(seed, []), headers=headers.alice)
        assert response.status_code == 400
        assert response.json()["code"] == "EMPTY_ORDER"

    def test_out_of_stock_leaves_stock_untouched(self, client, seed, headers):
        response = client.post(
            "/orders", json=order_body(seed, [(seed.red, 1), (seed.blue, 2)]), headers=headers.alice
        )
        assert response.status_code == 400
        assert response.json()["code"] == "OUT_OF_STOCK"

        stocks = {v["color"]: v["stock"] for v in client.get(f"/product-variants/product/{seed.product.id}").json()["data"]}
        assert stocks == {"red": 10, "blue": 1, "green": 5}

    def test_my_orders_paginated(self, client, seed, headers):
        for _ in range(3):
            place_order(client, seed, headers, [(seed.green, 1)])

        response = client.get("/orders", params={"limit": 2}, headers=headers.alice)
        data = response.json()["data"]
        assert data["totalItems"] == 3
        assert data["totalPages"] == 2
        assert len(data["items"]) == 2

        assert client.get("/orders", headers=headers.bob).json()["data"]["totalItems"] == 0

        response = client.get("/orders", params={"status": "cancelled"}, headers=headers.alice)
        assert response.json()["data"]["totalItems"] == 0

    def test_customer_status_changes_are_limited(self, client, seed, headers):
        order = place_order(client, seed, headers, [(seed.red, 1)])

        response = client.put(f"/orders/{order['id']}/status", json={"status": "processing"}, headers=headers.alice)
        assert response.status_code == 409
        assert response.json()["code"] == "INVALID_TRANSITION"

        response = client.put(
            f"/orders/{order['id']}/status", json={"status": "cancelled", "note": "too slow"}, headers=headers.alice
        )
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "cancelled"

    def test_cancel_restores_stock(self, client, seed, headers):
        order = place_order(client, seed, headers, [(seed.red, 4)])
        response = client.put(f"/orders/{order['id']}/cancel", json={"reason": "duplicate"}, headers=headers.alice)
        assert response.status_code == 200
        assert response.json()["data"]["cancel_reason"] == "duplicate"

        variant = client.get(f"/product-variants/{seed.red.id}").json()["data"]
        assert variant["stock"] == 10

    def test_cancel_processing_is_rejected_for_customer(self, client, seed, headers):
        order = place_order(client, seed, headers, [(seed.red, 1)])
        client.put(f"/orders/admin/{order['id']}/status", json={"status": "processing"}, headers=headers.admin)

        response = client.put(f"/orders/{order['id']}/cancel", headers=headers.alice)
        assert response.status_code == 409


class TestAdminOrders:
    def test_lifecycle_and_review_eligibility(self, client, seed, headers):
        order = place_order(client, seed, headers, [(seed.red, 1)])
        url = f"/orders/admin/{order['id']}/status"

        response = client.put(url, json={"status": "delivered"}, headers=headers.admin)
        assert response.status_code == 409

        for status in ("processing", "shipped", "delivered"):
            response = client.put(url, json={"status": status}, headers=headers.admin)
            assert response.status_code == 200, response.text

        history = [step["status"] for step in response.json()["data"]["status_history"]]
        assert history == ["pending", "processing", "shipped", "delivered"]

        response = client.get(f"/orders/{seed.product.id}/can-review", headers=headers.alice)
        assert response.json()["data"]["can_review"] is True

    def test_all_orders_search_and_stats(self, client, seed, headers):
        first = place_order(client, seed, headers, [(seed.red, 2)], "SAVE20")
        place_order(client, seed, headers, [(seed.green, 1)])

        response = client.get("/orders/admin/all", params={"search": first["order_code"]}, headers=headers.admin)
        items = response.json()["data"]["items"]
        assert [o["id"] for o in items] == [first["id"]]

        assert client.get("/orders/admin/all", headers=headers.alice).status_code == 403

        stats = client.get("/orders/admin/stats", headers=headers.admin).json()["data"]
        assert stats["total_orders"] == 2
        assert stats["status_counts"]["pending"] == 2
        assert Decimal(stats["total_revenue"]) == Decimal("0")

    def test_top_products_and_trends(self, client, seed, headers):
        place_order(client, seed, headers, [(seed.red, 1)])
        place_order(client, seed, headers, [(seed.green, 2)])

        response = client.get("/orders/admin/top-products", params={"limit": 3}, headers=headers.admin)
        assert response.status_code == 200
        top = response.json()["data"]
        assert [p["product_id"] for p in top] == [seed.product.id]
        assert top[0]["total_quantity"] == 3

        response = client.get("/orders/admin/trends", params={"days": 30}, headers=headers.admin)
        assert response.status_code == 200
        assert response.json()["data"]["total_in_period"] == 2

        response = client.get(
            "/orders/admin/trends",
            params={"start_date": "2026-02-01", "end_date": "2026-01-01"},
            headers=headers.admin,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_DATE_RANGE"

        assert client.get("/orders/admin/top-products", headers=headers.alice).status_code == 403

    def test_bulk_update(self, client, seed, headers):
        first = place_order(client, seed, headers, [(seed.red, 1)])
        second = place_order(client, seed, headers, [(seed.green, 1)])
        client.put(f"/orders/admin/{second['id']}/cancel", headers=headers.admin)

        response = client.patch(
            "/orders/admin/bulk-update-status",
            json={"order_ids": [first["id"], second["id"]], "status": "processing"},
            headers=headers.admin,
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["updated"] == [first["id"]]
        assert data["failed"][0]["order_id"] == second["id"]
        assert data["failed"][0]["code"] == "INVALID_TRANSITION"

    def test_delete_rules(self, client, seed, headers):
        order = place_order(client, seed, headers, [(seed.red, 1)])
        url = f"/orders/admin/{order['id']}"

        response = client.delete(url, headers=headers.admin)
        assert response.status_code == 409
        assert response.json()["code"] == "INVALID_STATE"

        client.put(f"{url}/cancel", headers=headers.admin)
        assert client.delete(url, params={"hard": True}, headers=headers.admin).status_code == 200
        assert client.get(f"/orders/{order['id']}", headers=headers.admin).status_code == 404

    def test_activity_log(self, client, seed, headers):
        place_order(client, seed, headers, [(seed.red, 1)])
        response = client.get("/activities/", headers=headers.admin)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["totalItems"] == 1
        assert data["items"][0]["username"] == "alice@shopmail.com"
