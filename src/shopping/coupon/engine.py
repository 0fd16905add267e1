"""Coupon validation and discount math.

Discounts are computed against priced cart lines (anything exposing
``category_id`` and a Decimal ``total``). For a category-scoped coupon the
applicable subtotal is recomputed from the matching lines only; the passed
total is ignored in that case. The returned discount never exceeds the
applicable subtotal.
"""

from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from shopping.coupon.coupon import Coupon, DiscountType, normalize_code
from shopping.shared.money import ZERO, percent_of, to_money

logger = structlog.get_logger(__name__)


def find_coupon_by_code(code: str) -> Coupon:
    coupons = current_domain.repository_for(Coupon)._dao.query.filter(code=normalize_code(code)).all().items
    if not coupons:
        raise ObjectNotFoundError("Coupon not found")
    return coupons[0]


def _matches_category(line, category_id) -> bool:
    return line.category_id is not None and str(line.category_id) == str(category_id)


def validate_coupon(code: str, user_id, cart_total: Decimal, cart_items: Sequence, now: datetime | None = None) -> Coupon:
    """Return the coupon if it can be used by this user on these cart lines.

    Raises ObjectNotFoundError for an unknown code and ValidationError for
    every other rule violation.
    """
    coupon = find_coupon_by_code(code)

    if not coupon.is_active:
        raise ValidationError({"coupon": ["Coupon is not active"]})

    if not coupon.is_within_window(now):
        raise ValidationError({"coupon": ["Coupon is expired or not yet valid"]})

    if coupon.limit_reached():
        raise ValidationError({"coupon": ["Coupon usage limit reached"]})

    if coupon.exhausted_for(user_id):
        raise ValidationError({"coupon": ["You have already used this coupon"]})

    if coupon.is_category_scoped and not any(_matches_category(line, coupon.category_id) for line in cart_items):
        raise ValidationError({"coupon": ["This coupon is not applicable to any items in your cart"]})

    return coupon


def applicable_total(coupon: Coupon, total: Decimal, items: Sequence) -> Decimal:
    if not coupon.is_category_scoped:
        return to_money(total)
    return sum((to_money(line.total) for line in items if _matches_category(line, coupon.category_id)), ZERO)


def calculate_discount(coupon: Coupon, total: Decimal, items: Sequence = ()) -> Decimal:
    base = applicable_total(coupon, total, items)

    if coupon.discount_type == DiscountType.PERCENTAGE.value:
        discount = percent_of(base, coupon.discount_value)
    elif coupon.discount_type == DiscountType.FIXED_AMOUNT.value:
        discount = to_money(coupon.discount_value)
    else:
        discount = ZERO

    return max(ZERO, min(discount, base))


def increment_usage_count(coupon_id, user_id) -> Coupon:
    """Record one completed order using the coupon. Called by the checkout flow."""
    repo = current_domain.repository_for(Coupon)
    coupon = repo.get(coupon_id)
    coupon.record_usage(user_id)
    repo.add(coupon)
    logger.info("Coupon usage recorded", code=coupon.code, user_id=str(user_id), used_count=coupon.used_count)
    return coupon
