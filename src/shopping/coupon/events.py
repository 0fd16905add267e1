"""Domain events for the Coupon aggregate."""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String

from shopping.domain import shopping


@shopping.event(part_of="Coupon")
class CouponCreated:
    __version__ = 1

    coupon_id = Identifier(required=True)
    code = String(required=True)
    discount_type = String(required=True)
    discount_value = Float(required=True)
    category_id = Identifier()
    start_date = DateTime(required=True)
    end_date = DateTime(required=True)


@shopping.event(part_of="Coupon")
class CouponUpdated:
    __version__ = 1

    coupon_id = Identifier(required=True)
    code = String(required=True)
    discount_type = String(required=True)
    discount_value = Float(required=True)
    is_active = Boolean()
    start_date = DateTime(required=True)
    end_date = DateTime(required=True)


@shopping.event(part_of="Coupon")
class CouponUsageRecorded:
    """An order placed with this coupon completed."""

    __version__ = 1

    coupon_id = Identifier(required=True)
    code = String(required=True)
    user_id = Identifier(required=True)
    used_count = Integer(required=True)
