"""Coupon management — commands and handler."""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from shopping.coupon.coupon import Coupon, normalize_code
from shopping.coupon.engine import increment_usage_count
from shopping.domain import shopping

logger = structlog.get_logger(__name__)


@shopping.command(part_of="Coupon")
class CreateCoupon:
    code = String(required=True, max_length=50)
    name = String(required=True, max_length=255)
    discount_type = String(required=True, max_length=20)
    discount_value = Float(required=True, min_value=0.0)
    start_date = DateTime(required=True)
    end_date = DateTime(required=True)
    usage_limit = Integer(min_value=0)
    user_usage_limit = Integer(default=1, min_value=1)
    category_id = Identifier()
    image = String(max_length=500)


@shopping.command(part_of="Coupon")
class UpdateCoupon:
    """Partial update: omitted fields keep their current value."""

    coupon_id = Identifier(required=True)
    code = String(max_length=50)
    name = String(max_length=255)
    discount_type = String(max_length=20)
    discount_value = Float(min_value=0.0)
    start_date = DateTime()
    end_date = DateTime()
    is_active = Boolean()
    usage_limit = Integer(min_value=0)
    user_usage_limit = Integer(min_value=1)
    category_id = Identifier()
    image = String(max_length=500)


@shopping.command(part_of="Coupon")
class DeleteCoupon:
    coupon_id = Identifier(required=True)


@shopping.command(part_of="Coupon")
class RecordCouponUsage:
    """Mark a coupon as used by a user once their order completes."""

    coupon_id = Identifier(required=True)
    user_id = Identifier(required=True)


def _ensure_code_is_free(repo, code: str, coupon_id=None) -> None:
    for existing in repo._dao.query.filter(code=code).all().items:
        if coupon_id is None or str(existing.id) != str(coupon_id):
            raise ValidationError({"code": [f"Coupon code {code} already exists"]})


@shopping.command_handler(part_of=Coupon)
class ManageCouponHandler:
    @handle(CreateCoupon)
    def create_coupon(self, command):
        repo = current_domain.repository_for(Coupon)
        code = normalize_code(command.code)
        _ensure_code_is_free(repo, code)

        coupon = Coupon.create(
            code=code,
            name=command.name,
            discount_type=command.discount_type,
            discount_value=command.discount_value,
            start_date=command.start_date,
            end_date=command.end_date,
            usage_limit=command.usage_limit,
            user_usage_limit=command.user_usage_limit,
            category_id=command.category_id,
            image=command.image,
        )
        repo.add(coupon)
        return str(coupon.id)

    @handle(UpdateCoupon)
    def update_coupon(self, command):
        repo = current_domain.repository_for(Coupon)
        coupon = repo.get(command.coupon_id)

        if command.code is not None:
            _ensure_code_is_free(repo, normalize_code(command.code), coupon.id)

        coupon.update_details(
            code=command.code,
            name=command.name,
            discount_type=command.discount_type,
            discount_value=command.discount_value,
            start_date=command.start_date,
            end_date=command.end_date,
            is_active=command.is_active,
            usage_limit=command.usage_limit,
            user_usage_limit=command.user_usage_limit,
            category_id=command.category_id,
            image=command.image,
        )
        repo.add(coupon)
        return str(coupon.id)

    @handle(DeleteCoupon)
    def delete_coupon(self, command):
        repo = current_domain.repository_for(Coupon)
        coupon = repo.get(command.coupon_id)
        repo._dao.delete(coupon)
        logger.info("Coupon deleted", coupon_id=str(coupon.id), code=coupon.code)

    @handle(RecordCouponUsage)
    def record_coupon_usage(self, command):
        coupon = increment_usage_count(command.coupon_id, command.user_id)
        return coupon.used_count
