"""Cart-level commands: coupon attach/detach and deactivation."""

import structlog
from protean import handle
from protean.fields import Identifier, String

from shopping.cart.cart import Cart
from shopping.cart.details import get_cart_with_details, price_cart
from shopping.cart.store import mutate_cart
from shopping.coupon.coupon import normalize_code
from shopping.coupon.engine import validate_coupon
from shopping.domain import shopping

logger = structlog.get_logger(__name__)


@shopping.command(part_of="Cart")
class ApplyCouponToCart:
    user_id = Identifier(required=True)
    code = String(required=True, max_length=50)


@shopping.command(part_of="Cart")
class RemoveCouponFromCart:
    user_id = Identifier(required=True)


@shopping.command(part_of="Cart")
class DeactivateCart:
    """Retire the user's active cart, typically after the order is placed."""

    user_id = Identifier(required=True)


@shopping.command_handler(part_of=Cart)
class ManageCartHandler:
    @handle(ApplyCouponToCart)
    def apply_coupon(self, command):
        code = normalize_code(command.code)

        def apply(cart):
            total, priced = price_cart(cart)
            validate_coupon(code, command.user_id, total, priced)
            cart.apply_coupon(code)

        cart, _ = mutate_cart(command.user_id, apply)
        logger.info("Coupon applied to cart", user_id=str(command.user_id), cart_id=str(cart.id), code=code)
        return get_cart_with_details(command.user_id, cart)

    @handle(RemoveCouponFromCart)
    def remove_coupon(self, command):
        cart, _ = mutate_cart(command.user_id, lambda cart: cart.remove_coupon())
        return get_cart_with_details(command.user_id, cart)

    @handle(DeactivateCart)
    def deactivate_cart(self, command):
        cart, _ = mutate_cart(command.user_id, lambda cart: cart.deactivate(), create=False)
        logger.info("Cart deactivated", user_id=str(command.user_id), cart_id=str(cart.id))
        return str(cart.id)
