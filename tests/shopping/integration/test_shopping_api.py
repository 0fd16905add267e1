"""Integration tests for the Shopping API endpoints via TestClient."""

from datetime import UTC, datetime, timedelta

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from protean.utils.globals import current_domain
from shopping.api import cart_router, coupon_router, register_error_handlers
from shopping.cart.cart import Cart
from shopping.coupon.coupon import Coupon

HEADERS = {"X-User-Id": "user-1"}


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(cart_router)
    app.include_router(coupon_router)
    register_error_handlers(app)
    return TestClient(app)


def _add_tee(client, quantity=2, is_selected=True, headers=HEADERS):
    response = client.post(
        "/cart/regular",
        headers=headers,
        json={
            "product_id": "prod-tee",
            "variant_quantities": [
                {"variant_id": "var-black", "size_quantities": [{"size_id": "size-m", "quantity": quantity}]}
            ],
            "is_selected": is_selected,
        },
    )
    assert response.status_code == 200
    return response.json()


def _create_coupon(client, **overrides):
    now = datetime.now(UTC)
    payload = {
        "code": "SAVE10",
        "name": "Ten off",
        "discount_type": "PERCENTAGE",
        "discount_value": 10,
        "start_date": (now - timedelta(days=1)).isoformat(),
        "end_date": (now + timedelta(days=1)).isoformat(),
    }
    payload.update(overrides)
    response = client.post("/coupons", json=payload)
    assert response.status_code == 201
    return response.json()["coupon_id"]


class TestCartEndpoints:
    def test_get_creates_empty_cart(self, client):
        response = client.get("/cart", headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["items"] == []
        assert current_domain.repository_for(Cart).find_active_for("user-1") is not None

    def test_missing_user_header(self, client):
        assert client.get("/cart").status_code == 422

    def test_add_regular_product(self, client):
        cart = _add_tee(client)
        assert cart["summary"]["items_total"] == 100.0
        assert cart["items"][0]["variants"][0]["size_quantities"][0]["size_name"] == "M"

    def test_add_design(self, client):
        response = client.post(
            "/cart/design",
            headers=HEADERS,
            json={
                "design_id": "design-1",
                "variant_quantities": [
                    {"variant_id": "var-black", "size_quantities": [{"size_id": "size-s", "quantity": 1}]}
                ],
            },
        )
        assert response.status_code == 200
        assert response.json()["items"][0]["is_design_item"] is True

    def test_design_of_other_user_is_404(self, client):
        response = client.post(
            "/cart/design",
            headers={"X-User-Id": "user-2"},
            json={
                "design_id": "design-1",
                "variant_quantities": [
                    {"variant_id": "var-black", "size_quantities": [{"size_id": "size-s", "quantity": 1}]}
                ],
            },
        )
        assert response.status_code == 404

    def test_unknown_product_is_404(self, client):
        response = client.post(
            "/cart/regular",
            headers=HEADERS,
            json={
                "product_id": "prod-missing",
                "variant_quantities": [
                    {"variant_id": "var-black", "size_quantities": [{"size_id": "size-m", "quantity": 1}]}
                ],
            },
        )
        assert response.status_code == 404

    def test_stocked_out_variant_is_400(self, client):
        response = client.post(
            "/cart/regular",
            headers=HEADERS,
            json={
                "product_id": "prod-tee",
                "variant_quantities": [
                    {"variant_id": "var-red", "size_quantities": [{"size_id": "size-m", "quantity": 1}]}
                ],
            },
        )
        assert response.status_code == 400

    def test_get_update_and_remove_item(self, client):
        item_id = _add_tee(client)["items"][0]["id"]

        response = client.get(f"/cart/items/{item_id}", headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["total"] == 100.0

        response = client.put(
            f"/cart/items/{item_id}",
            headers=HEADERS,
            json={"variant_quantities": [{"variant_id": "var-black", "size_quantities": [{"size_id": "size-m", "quantity": 5}]}]},
        )
        assert response.status_code == 200
        assert response.json()["summary"]["total_quantity"] == 5

        response = client.put(f"/cart/items/{item_id}", headers=HEADERS, json={"is_selected": False})
        assert response.status_code == 200
        assert response.json()["summary"]["selected_items_total"] == 0.0

        response = client.delete(f"/cart/items/{item_id}", headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["items"] == []

    def test_update_unknown_item_is_404(self, client):
        _add_tee(client)
        response = client.put("/cart/items/missing", headers=HEADERS, json={"is_selected": True})
        assert response.status_code == 404

    def test_clear_cart(self, client):
        _add_tee(client)
        response = client.delete("/cart", headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["items"] == []


class TestCouponEndpoints:
    def test_create_coupon(self, client):
        coupon_id = _create_coupon(client)
        assert current_domain.repository_for(Coupon).get(coupon_id).code == "SAVE10"

    def test_duplicate_coupon_is_400(self, client):
        _create_coupon(client)
        response = client.post(
            "/coupons",
            json={
                "code": "save10",
                "name": "Again",
                "discount_type": "PERCENTAGE",
                "discount_value": 5,
                "start_date": datetime.now(UTC).isoformat(),
                "end_date": (datetime.now(UTC) + timedelta(days=1)).isoformat(),
            },
        )
        assert response.status_code == 400

    def test_apply_and_remove_coupon(self, client):
        _create_coupon(client)
        _add_tee(client)

        response = client.post("/cart/coupon", headers=HEADERS, json={"code": "save10"})
        assert response.status_code == 200
        assert response.json()["summary"]["discount_total"] == 10.0

        response = client.delete("/cart/coupon", headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["summary"]["coupon"] is None

    def test_unknown_coupon_is_404(self, client):
        _add_tee(client)
        response = client.post("/cart/coupon", headers=HEADERS, json={"code": "NOPE"})
        assert response.status_code == 404

    def test_record_usage_blocks_reuse(self, client):
        coupon_id = _create_coupon(client)
        response = client.post(f"/coupons/{coupon_id}/usage", json={"user_id": "user-1"})
        assert response.status_code == 200
        assert response.json()["used_count"] == 1

        _add_tee(client)
        response = client.post("/cart/coupon", headers=HEADERS, json={"code": "SAVE10"})
        assert response.status_code == 400


class TestCouponAdminEndpoints:
    def test_list_and_get(self, client):
        coupon_id = _create_coupon(client)

        listing = client.get("/coupons").json()
        assert [c["id"] for c in listing["data"]] == [coupon_id]
        assert listing["meta"]["total"] == 1

        response = client.get(f"/coupons/{coupon_id}")
        assert response.status_code == 200
        assert response.json()["code"] == "SAVE10"

    def test_active_listing(self, client):
        _create_coupon(client)
        past = datetime.now(UTC) - timedelta(days=3)
        _create_coupon(
            client,
            code="GONE",
            start_date=past.isoformat(),
            end_date=(past + timedelta(days=1)).isoformat(),
        )
        codes = [c["code"] for c in client.get("/coupons/active").json()["data"]]
        assert codes == ["SAVE10"]

    def test_invalid_page_is_422(self, client):
        assert client.get("/coupons", params={"page": 0}).status_code == 422

    def test_update(self, client):
        coupon_id = _create_coupon(client)
        response = client.patch(f"/coupons/{coupon_id}", json={"discount_value": 25})
        assert response.status_code == 200
        assert response.json()["discount_value"] == 25.0
        assert response.json()["name"] == "Ten off"

    def test_delete(self, client):
        coupon_id = _create_coupon(client)
        assert client.delete(f"/coupons/{coupon_id}").status_code == 204
        assert client.get(f"/coupons/{coupon_id}").status_code == 404

    def test_lookup_by_code(self, client):
        coupon_id = _create_coupon(client)
        response = client.post("/coupons/apply", json={"code": "save10"})
        assert response.status_code == 200
        assert response.json()["id"] == coupon_id

    def test_lookup_unknown_code_is_404(self, client):
        assert client.post("/coupons/apply", json={"code": "NOPE"}).status_code == 404


class TestCheckoutEndpoints:
    def test_validate_checkout(self, client):
        _add_tee(client)
        response = client.post("/cart/checkout/validate", headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["summary"]["selected_items_total"] == 100.0

    def test_validate_checkout_with_nothing_selected_is_400(self, client):
        _add_tee(client, is_selected=False)
        response = client.post("/cart/checkout/validate", headers=HEADERS)
        assert response.status_code == 400

    def test_deactivate(self, client):
        cart_id = _add_tee(client)["cart_id"]
        response = client.post("/cart/deactivate", headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["cart_id"] == cart_id

        response = client.get("/cart", headers=HEADERS)
        assert response.json()["cart_id"] != cart_id


class TestErrorMapping:
    def test_lost_write_race_is_409(self, client, monkeypatch):
        from shopping.cart import store

        def always_stale(cart):
            raise store.StaleCartError("stale")

        monkeypatch.setattr(store.config, "CART_WRITE_ATTEMPTS", 1)
        monkeypatch.setattr(store, "save_cart", always_stale)

        response = client.delete("/cart/coupon", headers=HEADERS)
        assert response.status_code == 409
