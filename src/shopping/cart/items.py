"""Cart item management — commands and handler.

Adding accumulates quantities; updating sets absolute quantities. Every
variant that would enter an item is checked against the live catalog first
(variant exists, not stocked out, sizes offered). Reducing or removing
existing variants needs no catalog access.
"""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Boolean, Identifier, Text

from shopping.cart.cart import Cart
from shopping.cart.details import get_cart_with_details
from shopping.cart.merging import VariantChange, new_variant_ids, parse_changes
from shopping.cart.store import mutate_cart
from shopping.catalog import get_catalog
from shopping.catalog.port import ResolvedProduct, ResolvedVariant
from shopping.domain import shopping

logger = structlog.get_logger(__name__)


@shopping.command(part_of="Cart")
class AddProductToCart:
    user_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_quantities = Text(required=True)  # JSON: [{variant_id, size_quantities: [{size_id, quantity}]}]
    is_selected = Boolean(default=False)


@shopping.command(part_of="Cart")
class AddDesignToCart:
    user_id = Identifier(required=True)
    design_id = Identifier(required=True)
    variant_quantities = Text(required=True)
    is_selected = Boolean(default=False)


@shopping.command(part_of="Cart")
class UpdateCartItem:
    """Edit a cart line. Omitted fields are left untouched; an empty list is a real update."""

    user_id = Identifier(required=True)
    item_id = Identifier(required=True)
    variant_quantities = Text()
    is_selected = Boolean()


@shopping.command(part_of="Cart")
class RemoveCartItem:
    user_id = Identifier(required=True)
    item_id = Identifier(required=True)


@shopping.command(part_of="Cart")
class ClearCart:
    user_id = Identifier(required=True)


# ---------------------------------------------------------------------------
# Catalog validation
# ---------------------------------------------------------------------------
def _size_label(size_id: str) -> str:
    size = get_catalog().get_size(size_id)
    return size.name if size else size_id


def _check_variant(product: ResolvedProduct, change: VariantChange, require_sizes: bool = False) -> ResolvedVariant:
    variant = product.variant(change.variant_id)
    if variant is None:
        raise ObjectNotFoundError(f"Variant {change.variant_id} not found")

    if variant.is_stocked_out:
        raise ValidationError({"variant_quantities": [f"Variant {variant.label} is out of stock"]})

    if require_sizes and not change.positive_sizes:
        raise ValidationError(
            {"variant_quantities": [f"At least one size with quantity > 0 is required for variant {variant.label}"]}
        )

    for sq in change.positive_sizes:
        if not variant.offers_size(sq.size_id):
            raise ValidationError(
                {"variant_quantities": [f"Size {_size_label(sq.size_id)} not available for variant {variant.label}"]}
            )
    return variant


def validate_additions(product: ResolvedProduct, changes: list[VariantChange]) -> list[VariantChange]:
    """Validate an add request and keep only its positive size lines."""
    if not product.variants:
        raise ValidationError({"product": ["Product has no variants"]})

    validated = []
    for change in changes:
        _check_variant(product, change, require_sizes=True)
        validated.append(VariantChange(variant_id=change.variant_id, sizes=change.positive_sizes))

    if not validated:
        raise ValidationError({"variant_quantities": ["No valid variants provided"]})
    return validated


def _product_or_not_found(product_id, message="Product not found") -> ResolvedProduct:
    product = get_catalog().get_product(str(product_id))
    if product is None:
        raise ObjectNotFoundError(message)
    return product


@shopping.command_handler(part_of=Cart)
class ManageCartItemsHandler:
    @handle(AddProductToCart)
    def add_product_to_cart(self, command):
        product = _product_or_not_found(command.product_id)
        changes = validate_additions(product, parse_changes(command.variant_quantities))

        cart, item = mutate_cart(
            command.user_id,
            lambda cart: cart.add_variants(
                product_id=product.product_id,
                changes=changes,
                unit_price=float(product.discounted_price),
                is_selected=command.is_selected,
            ),
        )
        logger.info("Product added to cart", user_id=str(command.user_id), cart_id=str(cart.id), item_id=str(item.id))
        return get_cart_with_details(command.user_id, cart)

    @handle(AddDesignToCart)
    def add_design_to_cart(self, command):
        design = get_catalog().get_active_user_design(str(command.user_id), str(command.design_id))
        if design is None:
            raise ObjectNotFoundError("Design not found or access denied")

        base_product = _product_or_not_found(design.base_product_id, "Base product not found for this design")
        changes = validate_additions(base_product, parse_changes(command.variant_quantities))

        cart, item = mutate_cart(
            command.user_id,
            lambda cart: cart.add_variants(
                product_id=base_product.product_id,
                changes=changes,
                unit_price=float(base_product.discounted_price),
                is_selected=command.is_selected,
                design_id=design.design_id,
                design_data=design.preview(),
            ),
        )
        logger.info(
            "Design added to cart",
            user_id=str(command.user_id),
            cart_id=str(cart.id),
            item_id=str(item.id),
            design_id=design.design_id,
        )
        return get_cart_with_details(command.user_id, cart)

    @handle(UpdateCartItem)
    def update_cart_item(self, command):
        changes = parse_changes(command.variant_quantities) if command.variant_quantities is not None else None

        def update(cart):
            item = cart.get_item(command.item_id)
            if changes:
                introduced = new_variant_ids(item.variants, changes)
                if introduced:
                    product = _product_or_not_found(item.product_id)
                    for change in changes:
                        if change.variant_id in introduced:
                            _check_variant(product, change)
            return cart.update_item(command.item_id, changes=changes, is_selected=command.is_selected)

        cart, removed = mutate_cart(command.user_id, update, create=False)
        if removed:
            logger.info("Cart item emptied and removed", cart_id=str(cart.id), item_id=str(command.item_id))
        return get_cart_with_details(command.user_id, cart)

    @handle(RemoveCartItem)
    def remove_cart_item(self, command):
        cart, _ = mutate_cart(command.user_id, lambda cart: cart.remove_item(command.item_id), create=False)
        return get_cart_with_details(command.user_id, cart)

    @handle(ClearCart)
    def clear_cart(self, command):
        cart, _ = mutate_cart(command.user_id, lambda cart: cart.clear(), create=False)
        return get_cart_with_details(command.user_id, cart)
