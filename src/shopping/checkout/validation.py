"""Pre-checkout validation of the selected cart items.

Every violation is collected before failing, so the caller can show the
complete list in one pass instead of fixing problems one at a time.
"""

import structlog
from protean.exceptions import ValidationError

from shopping.cart.cart import Cart, CartItem
from shopping.cart.details import get_cart_with_details
from shopping.cart.store import find_active_cart
from shopping.catalog import get_catalog
from shopping.catalog.port import ResolvedProduct, ResolvedSize

logger = structlog.get_logger(__name__)


def _item_violations(item: CartItem, product: ResolvedProduct | None, sizes: dict[str, ResolvedSize]) -> list[str]:
    if product is None:
        return [f"Product for cart item {item.id} is no longer available"]

    if product.is_stocked_out:
        return [f"{product.name} is out of stock"]

    violations = []
    for vq in item.variants:
        variant = product.variant(vq.variant_id)
        if variant is None:
            violations.append(f"{product.name}: variant {vq.variant_id} is no longer available")
            continue

        if variant.is_stocked_out:
            violations.append(f"{product.name} ({variant.label}) is out of stock")
            continue

        for sq in vq.sizes:
            size_name = sizes[sq.size_id].name if sq.size_id in sizes else sq.size_id
            if not variant.offers_size(sq.size_id):
                violations.append(f"{product.name} ({variant.label}): size {size_name} is no longer available")
            elif product.stock is not None and sq.quantity > product.stock:
                # Product stock is checked per size line, never against a sum.
                violations.append(
                    f"{product.name} ({variant.label}) size {size_name}: "
                    f"only {product.stock} left in stock, {sq.quantity} requested"
                )

        if variant.stock is not None and vq.quantity > variant.stock:
            violations.append(
                f"{product.name} ({variant.label}): only {variant.stock} left in stock, {vq.quantity} requested"
            )

    return violations


def collect_violations(cart: Cart) -> list[str]:
    """All reasons the cart's selected items cannot be checked out right now."""
    if not cart.items:
        return ["Cart is empty"]

    selected = cart.selected_items
    if not selected:
        return ["No items selected for checkout"]

    catalog = get_catalog()
    products = catalog.get_products(str(item.product_id) for item in selected)
    sizes = catalog.get_sizes({sq.size_id for item in selected for vq in item.variants for sq in vq.sizes})

    violations = []
    for item in selected:
        violations.extend(_item_violations(item, products.get(str(item.product_id)), sizes))
    return violations


def validate_cart_for_checkout(user_id) -> dict:
    """Return the cart detail restricted to selected items, or fail with every violation."""
    cart = find_active_cart(user_id)
    if cart is None:
        raise ValidationError({"cart": ["Cart is empty"]})

    violations = collect_violations(cart)
    if violations:
        logger.info("Cart failed checkout validation", user_id=str(user_id), violations=violations)
        raise ValidationError({"cart": violations})

    details = get_cart_with_details(user_id, cart)
    details["items"] = [item for item in details["items"] if item["is_selected"]]
    return details
