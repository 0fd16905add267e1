"""Coupon read functions: paged listings and single-coupon views.

Listings are newest first. The active listing keeps coupons that are
switched on and whose window contains the current time.
"""

import math
from datetime import datetime

from protean.utils.globals import current_domain

from shopping.coupon.coupon import Coupon
from shopping.coupon.engine import find_coupon_by_code


def coupon_view(coupon: Coupon) -> dict:
    return {
        "id": str(coupon.id),
        "code": coupon.code,
        "name": coupon.name,
        "discount_type": coupon.discount_type,
        "discount_value": coupon.discount_value,
        "start_date": coupon.start_date.isoformat() if coupon.start_date else None,
        "end_date": coupon.end_date.isoformat() if coupon.end_date else None,
        "is_active": bool(coupon.is_active),
        "usage_limit": coupon.usage_limit,
        "used_count": coupon.used_count or 0,
        "user_usage_limit": coupon.user_usage_limit,
        "category_id": str(coupon.category_id) if coupon.category_id else None,
        "image": coupon.image,
    }


def _newest_first() -> list[Coupon]:
    coupons = current_domain.repository_for(Coupon)._dao.query.all().items
    return sorted(coupons, key=lambda c: c.created_at, reverse=True)


def _page(coupons: list[Coupon], page: int, limit: int) -> dict:
    start = (page - 1) * limit
    return {
        "data": [coupon_view(c) for c in coupons[start : start + limit]],
        "meta": {
            "total": len(coupons),
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(len(coupons) / limit),
        },
    }


def list_coupons(page: int = 1, limit: int = 10) -> dict:
    return _page(_newest_first(), page, limit)


def list_active_coupons(page: int = 1, limit: int = 10, now: datetime | None = None) -> dict:
    active = [c for c in _newest_first() if c.is_active and c.is_within_window(now)]
    return _page(active, page, limit)


def get_coupon(coupon_id) -> dict:
    """Raises ObjectNotFoundError for an unknown id."""
    return coupon_view(current_domain.repository_for(Coupon).get(coupon_id))


def lookup_coupon(code: str) -> dict:
    """Coupon by code, case-insensitive. No usage rules are checked here."""
    return coupon_view(find_coupon_by_code(code))
