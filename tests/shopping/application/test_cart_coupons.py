"""Application tests for coupon management and coupons applied to carts."""

import json
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain
from shopping.cart import details as cart_details
from shopping.cart.cart import Cart
from shopping.cart.details import get_cart_with_details
from shopping.cart.items import AddProductToCart, RemoveCartItem
from shopping.cart.management import ApplyCouponToCart, RemoveCouponFromCart
from shopping.catalog.port import ResolvedProduct, ResolvedVariant
from shopping.coupon.coupon import Coupon
from shopping.coupon.management import CreateCoupon, RecordCouponUsage


def _add(product_id, variant_id, size_id, quantity, is_selected=False, user_id="user-1"):
    payload = json.dumps([{"variant_id": variant_id, "size_quantities": [{"size_id": size_id, "quantity": quantity}]}])
    command = AddProductToCart(
        user_id=user_id,
        product_id=product_id,
        variant_quantities=payload,
        is_selected=is_selected,
    )
    return current_domain.process(command, asynchronous=False)


def _apply(code, user_id="user-1"):
    return current_domain.process(ApplyCouponToCart(user_id=user_id, code=code), asynchronous=False)


def _stored_cart(user_id="user-1"):
    return current_domain.repository_for(Cart).find_active_for(user_id)


@pytest.fixture()
def mixed_cart(catalog):
    """Jacket 140 x3 (cat-x, selected) and coat 200 x3 (cat-y, unselected): 1020 total."""
    catalog.add_product(
        ResolvedProduct(
            product_id="prod-jacket",
            name="Jacket",
            discounted_price=Decimal("140.00"),
            category_id="cat-x",
            variants=(ResolvedVariant(variant_id="var-navy", size_ids=("size-m",)),),
        )
    )
    catalog.add_product(
        ResolvedProduct(
            product_id="prod-coat",
            name="Coat",
            discounted_price=Decimal("200.00"),
            category_id="cat-y",
            variants=(ResolvedVariant(variant_id="var-grey", size_ids=("size-l",)),),
        )
    )
    _add("prod-jacket", "var-navy", "size-m", 3, is_selected=True)
    return _add("prod-coat", "var-grey", "size-l", 3)


class TestCreateCoupon:
    def _create(self, **overrides):
        now = datetime.now(UTC)
        fields = {
            "code": "welcome5",
            "name": "Welcome",
            "discount_type": "FIXED_AMOUNT",
            "discount_value": 5.0,
            "start_date": now - timedelta(days=1),
            "end_date": now + timedelta(days=30),
        }
        fields.update(overrides)
        return current_domain.process(CreateCoupon(**fields), asynchronous=False)

    def test_create(self):
        coupon_id = self._create()
        coupon = current_domain.repository_for(Coupon).get(coupon_id)
        assert coupon.code == "WELCOME5"
        assert coupon.discount_type == "FIXED_AMOUNT"

    def test_duplicate_code_is_rejected(self):
        self._create()
        with pytest.raises(ValidationError):
            self._create(code=" Welcome5 ")

    def test_invalid_window_is_rejected(self):
        now = datetime.now(UTC)
        with pytest.raises(ValidationError):
            self._create(start_date=now, end_date=now - timedelta(days=2))


class TestRecordCouponUsage:
    def test_increments_counters(self, make_coupon):
        coupon = make_coupon()
        used = current_domain.process(
            RecordCouponUsage(coupon_id=str(coupon.id), user_id="user-1"), asynchronous=False
        )
        assert used == 1
        stored = current_domain.repository_for(Coupon).get(coupon.id)
        assert stored.used_by_users == {"user-1"}

    def test_unknown_coupon(self):
        with pytest.raises(ObjectNotFoundError):
            current_domain.process(RecordCouponUsage(coupon_id="missing", user_id="user-1"), asynchronous=False)


class TestApplyCoupon:
    def test_percentage_coupon(self, make_coupon):
        make_coupon(code="SAVE10", discount_value=10.0)
        _add("prod-tee", "var-black", "size-m", 2, is_selected=True)

        cart = _apply("save10")
        summary = cart["summary"]
        assert summary["coupon"]["code"] == "SAVE10"
        assert summary["discount_total"] == 10.0
        assert summary["total_amount"] == 90.0
        assert summary["selected_discount_total"] == 10.0
        assert _stored_cart().coupon_code == "SAVE10"
        assert _stored_cart().discount_total == 10.0

    def test_fixed_amount_never_exceeds_total(self, make_coupon):
        make_coupon(code="BIG", discount_type="FIXED_AMOUNT", discount_value=500.0)
        _add("prod-mug", "var-blue", "size-one", 2)

        summary = _apply("BIG")["summary"]
        assert summary["discount_total"] == 25.0
        assert summary["total_amount"] == 0.0

    def test_category_scoped_coupon_only_discounts_matching_items(self, mixed_cart, make_coupon):
        make_coupon(code="XTEN", discount_value=10.0, category_id="cat-x")

        summary = _apply("XTEN")["summary"]
        assert summary["items_total"] == 1020.0
        assert summary["discount_total"] == 42.0
        assert summary["total_amount"] == 978.0
        assert summary["selected_discount_total"] == 42.0
        assert summary["selected_total_amount"] == 378.0

    def test_category_scoped_coupon_ignores_unselected_for_selected_totals(self, mixed_cart, make_coupon):
        make_coupon(code="YTEN", discount_value=10.0, category_id="cat-y")

        summary = _apply("YTEN")["summary"]
        assert summary["discount_total"] == 60.0
        assert summary["selected_discount_total"] == 0.0
        assert summary["selected_total_amount"] == 420.0

    def test_category_mismatch_is_rejected(self, make_coupon):
        make_coupon(code="XONLY", category_id="cat-x")
        _add("prod-tee", "var-black", "size-m", 1)
        with pytest.raises(ValidationError) as exc:
            _apply("XONLY")
        assert "not applicable" in str(exc.value)
        assert _stored_cart().coupon_code is None

    def test_unknown_code(self):
        _add("prod-tee", "var-black", "size-m", 1)
        with pytest.raises(ObjectNotFoundError):
            _apply("NOPE")

    def test_inactive_coupon(self, make_coupon):
        coupon = make_coupon(code="OFF")
        coupon.deactivate()
        current_domain.repository_for(Coupon).add(coupon)
        with pytest.raises(ValidationError):
            _apply("OFF")

    def test_expired_coupon(self, make_coupon):
        now = datetime.now(UTC)
        make_coupon(code="OLD", start_date=now - timedelta(days=10), end_date=now - timedelta(days=1))
        with pytest.raises(ValidationError) as exc:
            _apply("OLD")
        assert "expired" in str(exc.value)

    def test_usage_limit_reached(self, make_coupon):
        coupon = make_coupon(code="ONCE", usage_limit=1)
        current_domain.process(RecordCouponUsage(coupon_id=str(coupon.id), user_id="user-2"), asynchronous=False)
        with pytest.raises(ValidationError) as exc:
            _apply("ONCE")
        assert "usage limit" in str(exc.value)

    def test_already_used_by_this_user(self, make_coupon):
        coupon = make_coupon(code="MINE")
        current_domain.process(RecordCouponUsage(coupon_id=str(coupon.id), user_id="user-1"), asynchronous=False)
        with pytest.raises(ValidationError) as exc:
            _apply("MINE")
        assert "already used" in str(exc.value)

    def test_remove_coupon(self, make_coupon):
        make_coupon(code="SAVE10")
        _add("prod-tee", "var-black", "size-m", 2)
        _apply("SAVE10")

        cart = current_domain.process(RemoveCouponFromCart(user_id="user-1"), asynchronous=False)
        assert cart["summary"]["coupon"] is None
        assert cart["summary"]["discount_total"] == 0.0
        assert _stored_cart().coupon_code is None


class TestStaleCouponRepair:
    def test_expired_coupon_is_detached_on_read(self, make_coupon):
        coupon = make_coupon(code="SAVE10")
        _add("prod-tee", "var-black", "size-m", 2)
        _apply("SAVE10")

        coupon.end_date = datetime.now(UTC) - timedelta(minutes=1)
        coupon.start_date = datetime.now(UTC) - timedelta(days=2)
        current_domain.repository_for(Coupon).add(coupon)

        cart = get_cart_with_details("user-1")
        assert cart["summary"]["coupon"] is None
        assert cart["summary"]["discount_total"] == 0.0
        assert cart["summary"]["total_amount"] == 100.0

        stored = _stored_cart()
        assert stored.coupon_code is None
        assert stored.discount_total == 0.0

    def test_coupon_losing_its_category_items_is_detached(self, make_coupon):
        make_coupon(code="MUGS", category_id="cat-mugs")
        cart = _add("prod-mug", "var-blue", "size-one", 1)
        _add("prod-tee", "var-black", "size-m", 1)
        _apply("MUGS")

        mug_item = cart["items"][0]["id"]
        result = current_domain.process(RemoveCartItem(user_id="user-1", item_id=mug_item), asynchronous=False)
        assert result["summary"]["coupon"] is None
        assert _stored_cart().coupon_code is None

    def test_failed_repair_write_does_not_fail_the_read(self, make_coupon, monkeypatch):
        coupon = make_coupon(code="SAVE10")
        _add("prod-tee", "var-black", "size-m", 2)
        _apply("SAVE10")
        coupon.deactivate()
        current_domain.repository_for(Coupon).add(coupon)

        def broken_save(cart):
            raise RuntimeError("database unavailable")

        monkeypatch.setattr(cart_details, "save_cart", broken_save)

        cart = get_cart_with_details("user-1")
        assert cart["summary"]["coupon"] is None
        assert cart["summary"]["discount_total"] == 0.0
        assert _stored_cart().coupon_code == "SAVE10"
