"""Coupon aggregate — a global, code-addressed discount.

Carts reference coupons by code only. Usage is tracked globally
(``used_count`` against ``usage_limit``) and per user (``used_by`` maps a
user id to how many completed orders used the coupon, bounded by
``user_usage_limit``).
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from shopping.coupon.events import CouponCreated, CouponUpdated, CouponUsageRecorded
from shopping.domain import shopping


class DiscountType(Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def _aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _utcnow() -> datetime:
    return datetime.now(UTC)


@shopping.aggregate
class Coupon:
    code = String(required=True, max_length=50, unique=True)
    name = String(required=True, max_length=255)
    discount_type = String(required=True, choices=DiscountType)
    discount_value = Float(required=True, min_value=0.0)
    start_date = DateTime(required=True)
    end_date = DateTime(required=True)
    is_active = Boolean(default=True)
    usage_limit = Integer(min_value=0)
    used_count = Integer(default=0, min_value=0)
    user_usage_limit = Integer(default=1, min_value=1)
    used_by = Text(default="{}")  # JSON: {user_id: times used}
    category_id = Identifier()
    image = String(max_length=500)
    created_at = DateTime(default=_utcnow)
    updated_at = DateTime(default=_utcnow)

    @invariant.post
    def window_must_be_ordered(self):
        if self.start_date and self.end_date and _aware(self.end_date) < _aware(self.start_date):
            raise ValidationError({"end_date": ["End date must not be before start date"]})

    @invariant.post
    def percentage_cannot_exceed_hundred(self):
        if self.discount_type == DiscountType.PERCENTAGE.value and (self.discount_value or 0) > 100:
            raise ValidationError({"discount_value": ["Percentage discount cannot exceed 100"]})

    @classmethod
    def create(
        cls,
        code,
        name,
        discount_type,
        discount_value,
        start_date,
        end_date,
        usage_limit=None,
        user_usage_limit=1,
        category_id=None,
        image=None,
    ):
        coupon = cls(
            code=normalize_code(code),
            name=name,
            discount_type=discount_type,
            discount_value=discount_value,
            start_date=start_date,
            end_date=end_date,
            is_active=True,
            usage_limit=usage_limit,
            used_count=0,
            user_usage_limit=user_usage_limit or 1,
            used_by=json.dumps({}),
            category_id=category_id,
            image=image,
        )
        coupon.raise_(
            CouponCreated(
                coupon_id=str(coupon.id),
                code=coupon.code,
                discount_type=coupon.discount_type,
                discount_value=coupon.discount_value,
                category_id=str(category_id) if category_id else None,
                start_date=start_date,
                end_date=end_date,
            )
        )
        return coupon

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def usage_by_user(self) -> dict[str, int]:
        return json.loads(self.used_by) if self.used_by else {}

    @property
    def used_by_users(self) -> set[str]:
        return set(self.usage_by_user)

    @property
    def is_category_scoped(self) -> bool:
        return bool(self.category_id)

    def is_within_window(self, now: datetime | None = None) -> bool:
        now = _aware(now) or datetime.now(UTC)
        return _aware(self.start_date) <= now <= _aware(self.end_date)

    def limit_reached(self) -> bool:
        return bool(self.usage_limit) and (self.used_count or 0) >= self.usage_limit

    def exhausted_for(self, user_id) -> bool:
        return self.usage_by_user.get(str(user_id), 0) >= (self.user_usage_limit or 1)

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def record_usage(self, user_id):
        usage = self.usage_by_user
        usage[str(user_id)] = usage.get(str(user_id), 0) + 1
        self.used_by = json.dumps(usage)
        self.used_count = (self.used_count or 0) + 1

        self.raise_(
            CouponUsageRecorded(
                coupon_id=str(self.id),
                code=self.code,
                user_id=str(user_id),
                used_count=self.used_count,
            )
        )

    def update_details(
        self,
        code=None,
        name=None,
        discount_type=None,
        discount_value=None,
        start_date=None,
        end_date=None,
        is_active=None,
        usage_limit=None,
        user_usage_limit=None,
        category_id=None,
        image=None,
    ):
        """Overwrite the fields that were given. None leaves a field as it is."""
        changes = {
            "code": normalize_code(code) if code is not None else None,
            "name": name,
            "discount_type": discount_type,
            "discount_value": discount_value,
            "start_date": start_date,
            "end_date": end_date,
            "is_active": is_active,
            "usage_limit": usage_limit,
            "user_usage_limit": user_usage_limit,
            "category_id": category_id,
            "image": image,
        }

        # A window can move past its old end in one update.
        with atomic_change(self):
            for field_name, value in changes.items():
                if value is not None:
                    setattr(self, field_name, value)
            self.updated_at = _utcnow()

        self.raise_(
            CouponUpdated(
                coupon_id=str(self.id),
                code=self.code,
                discount_type=self.discount_type,
                discount_value=self.discount_value,
                is_active=self.is_active,
                start_date=self.start_date,
                end_date=self.end_date,
            )
        )

    def deactivate(self):
        self.is_active = False
