"""Cart detail projection — layered totals computed on read.

Totals are built bottom-up, rounding once per atomic contribution:

    size_total    = round2(unit_price * quantity)
    variant_total = round2(sum of size_total)
    item_total    = round2(sum of variant_total)
    items_total   = sum of item_total            (already-rounded, not re-rounded)

Selected-only totals use the same item totals restricted to selected items.
A coupon attached to the cart is re-validated on every read; when it no
longer holds (expired, limit reached, category gone) it is detached and the
discount is zero. Items whose product disappeared from the catalog are
dropped from the cart on read as well.
"""

from dataclasses import dataclass
from decimal import Decimal

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError

from shopping import config
from shopping.cart.cart import Cart, CartItem
from shopping.cart.store import get_cart, get_or_create_cart, save_cart
from shopping.catalog import get_catalog
from shopping.catalog.port import ResolvedProduct, ResolvedSize
from shopping.coupon.engine import calculate_discount, validate_coupon
from shopping.shared.money import ZERO, as_float, clamp_non_negative, line_total, to_decimal, to_money

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PricedItem:
    """A cart item reduced to what coupon math needs."""

    item_id: str
    product_id: str
    category_id: str | None
    total: Decimal
    quantity: int
    is_selected: bool


def _priced(item: CartItem, product: ResolvedProduct, total: Decimal, quantity: int) -> PricedItem:
    return PricedItem(
        item_id=str(item.id),
        product_id=product.product_id,
        category_id=product.category_id,
        total=total,
        quantity=quantity,
        is_selected=bool(item.is_selected),
    )


def _persist_repair(cart: Cart, reason: str) -> None:
    """Best-effort write of a read-side repair; a failure never fails the read."""
    try:
        save_cart(cart)
    except Exception:
        logger.warning("Could not persist cart repair", cart_id=str(cart.id), reason=reason, exc_info=True)


def _display_images(item: CartItem, variant) -> dict:
    images = dict(variant.images or {})
    preview = item.design_preview if item.is_design_item else None
    if preview:
        for side in ("front_image", "back_image", "left_image", "right_image"):
            images[side] = preview.get(side) or images.get(side)
    return images


def _price_item(item: CartItem, product: ResolvedProduct, sizes: dict[str, ResolvedSize]):
    unit_price = to_decimal(product.discounted_price)
    variants = []
    # Counts follow the stored tree, including variants the catalog no longer lists.
    quantity = sum(vq.quantity for vq in item.variants)

    for vq in item.variants:
        variant = product.variant(vq.variant_id)
        if variant is None:
            logger.warning(
                "Variant missing from product, skipping",
                item_id=str(item.id),
                product_id=product.product_id,
                variant_id=vq.variant_id,
            )
            continue

        size_lines = []
        for sq in vq.sizes:
            size = sizes.get(sq.size_id)
            size_lines.append(
                {
                    "size_id": sq.size_id,
                    "size_name": size.name if size else "Unknown",
                    "quantity": sq.quantity,
                    "size_total": line_total(unit_price, sq.quantity),
                }
            )

        variants.append(
            {
                "variant_id": vq.variant_id,
                "color": variant.color,
                "color_hex": variant.color_hex,
                "size_quantities": size_lines,
                "display_images": _display_images(item, variant),
                "variant_total": to_money(sum((line["size_total"] for line in size_lines), ZERO)),
            }
        )

    item_total = to_money(sum((v["variant_total"] for v in variants), ZERO))
    return variants, item_total, quantity, unit_price


def _render_variants(variants: list[dict]) -> list[dict]:
    rendered = []
    for variant in variants:
        rendered.append(
            {
                **variant,
                "size_quantities": [
                    {**line, "size_total": as_float(line["size_total"])} for line in variant["size_quantities"]
                ],
                "variant_total": as_float(variant["variant_total"]),
            }
        )
    return rendered


def _item_view(item: CartItem, product: ResolvedProduct, variants, item_total, quantity, unit_price) -> dict:
    preview = item.design_preview
    return {
        "id": str(item.id),
        "product": {
            "id": product.product_id,
            "name": product.name,
            "brand": product.brand,
            "price": as_float(to_money(product.price if product.price is not None else product.discounted_price)),
            "discounted_price": as_float(unit_price),
            "thumbnail": product.thumbnail,
            "category_id": product.category_id,
        },
        "design": (
            {"id": str(item.design_id), "name": preview.get("design_name") if preview else None}
            if item.design_id
            else None
        ),
        "variants": _render_variants(variants),
        "price": as_float(unit_price),
        "total": as_float(item_total),
        "total_quantity": quantity,
        "is_selected": bool(item.is_selected),
        "is_design_item": bool(item.is_design_item),
    }


def _resolve(cart: Cart):
    catalog = get_catalog()
    products = catalog.get_products(str(item.product_id) for item in cart.items)
    size_ids = {sq.size_id for item in cart.items for vq in item.variants for sq in vq.sizes}
    return products, catalog.get_sizes(size_ids)


def get_cart_with_details(user_id, cart: Cart | None = None) -> dict:
    """Build the full cart response: items with per-size/variant/item totals and a summary."""
    if cart is None:
        cart = get_or_create_cart(user_id)
    products, sizes = _resolve(cart)

    dead = [item.id for item in cart.items if str(item.product_id) not in products or not item.variants]
    if dead:
        logger.info("Dropping unavailable cart items", cart_id=str(cart.id), item_ids=[str(i) for i in dead])
        cart.discard_items(dead)
        _persist_repair(cart, "unavailable items")

    items = []
    priced: list[PricedItem] = []
    items_total = ZERO
    selected_items_total = ZERO
    total_quantity = 0
    selected_total_quantity = 0
    variant_count = 0

    for item in cart.items:
        product = products[str(item.product_id)]
        variants, item_total, quantity, unit_price = _price_item(item, product, sizes)

        items_total += item_total
        total_quantity += quantity
        variant_count += len(item.variants)
        if item.is_selected:
            selected_items_total += item_total
            selected_total_quantity += quantity

        priced.append(_priced(item, product, item_total, quantity))
        items.append(_item_view(item, product, variants, item_total, quantity, unit_price))

    discount_total = ZERO
    selected_discount_total = ZERO
    coupon_details = None

    if cart.coupon_code:
        try:
            coupon = validate_coupon(cart.coupon_code, user_id, items_total, priced)
        except (ValidationError, ObjectNotFoundError) as exc:
            logger.info(
                "Detaching stale coupon from cart",
                cart_id=str(cart.id),
                coupon_code=cart.coupon_code,
                reason=str(getattr(exc, "messages", exc)),
            )
            cart.remove_coupon(reason="no longer valid")
            _persist_repair(cart, "stale coupon")
        else:
            selected = [p for p in priced if p.is_selected]
            discount_total = calculate_discount(coupon, items_total, priced)
            selected_discount_total = calculate_discount(coupon, selected_items_total, selected)
            coupon_details = {
                "code": coupon.code,
                "discount_type": coupon.discount_type,
                "discount_value": coupon.discount_value,
                "category_id": str(coupon.category_id) if coupon.category_id else None,
                "discount_amount": as_float(discount_total),
                "selected_discount_amount": as_float(selected_discount_total),
            }

    if to_money(cart.discount_total) != discount_total:
        cart.discount_total = float(discount_total)
        _persist_repair(cart, "discount cache")

    return {
        "cart_id": str(cart.id),
        "items": items,
        "summary": {
            "items_total": as_float(items_total),
            "discount_total": as_float(discount_total),
            "total_amount": as_float(clamp_non_negative(items_total - discount_total)),
            "item_count": len(items),
            "variant_count": variant_count,
            "total_quantity": total_quantity,
            "coupon": coupon_details,
            "selected_items_total": as_float(selected_items_total),
            "selected_discount_total": as_float(selected_discount_total),
            "selected_total_amount": as_float(clamp_non_negative(selected_items_total - selected_discount_total)),
            "selected_total_quantity": selected_total_quantity,
            "currency": config.CURRENCY,
        },
    }


def get_item_details(user_id, item_id) -> dict:
    """Detail view of a single cart item."""
    cart = get_cart(user_id)
    item = cart.get_item(item_id)

    products, sizes = _resolve(cart)
    product = products.get(str(item.product_id))
    if product is None:
        raise ObjectNotFoundError("Product not found for cart item")

    variants, item_total, quantity, unit_price = _price_item(item, product, sizes)
    return _item_view(item, product, variants, item_total, quantity, unit_price)


def price_cart(cart: Cart) -> tuple[Decimal, list[PricedItem]]:
    """Items total and priced lines for coupon checks, without repairs or rendering."""
    products, sizes = _resolve(cart)
    priced = []
    total = ZERO
    for item in cart.items:
        product = products.get(str(item.product_id))
        if product is None:
            continue
        _, item_total, quantity, _ = _price_item(item, product, sizes)
        total += item_total
        priced.append(_priced(item, product, item_total, quantity))
    return total, priced
