"""Domain events for the Cart aggregate."""

from protean.fields import Identifier, Integer, String

from shopping.domain import shopping


@shopping.event(part_of="Cart")
class CartCreated:
    """A fresh active cart was created for a user."""

    __version__ = 1

    cart_id = Identifier(required=True)
    user_id = Identifier(required=True)


@shopping.event(part_of="Cart")
class CartItemAdded:
    """Quantities were added to a cart item (new or existing)."""

    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    product_id = Identifier(required=True)
    design_id = Identifier()
    quantity_added = Integer(required=True)


@shopping.event(part_of="Cart")
class CartItemUpdated:
    """A cart line was edited to absolute quantities and/or reselected."""

    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@shopping.event(part_of="Cart")
class CartItemRemoved:
    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    reason = String(max_length=50)


@shopping.event(part_of="Cart")
class CartCleared:
    __version__ = 1

    cart_id = Identifier(required=True)
    items_removed = Integer(required=True)


@shopping.event(part_of="Cart")
class CartCouponApplied:
    __version__ = 1

    cart_id = Identifier(required=True)
    coupon_code = String(required=True)


@shopping.event(part_of="Cart")
class CartCouponRemoved:
    """The coupon was removed by the user or detached because it went stale."""

    __version__ = 1

    cart_id = Identifier(required=True)
    coupon_code = String(required=True)
    reason = String(max_length=255)


@shopping.event(part_of="Cart")
class CartDeactivated:
    __version__ = 1

    cart_id = Identifier(required=True)
    user_id = Identifier(required=True)
