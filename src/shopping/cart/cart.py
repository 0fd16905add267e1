"""Cart aggregate — one active cart per user holding variant/size trees.

A cart item is identified by its product (regular item) or by its
product + design pair (design item); at most one item exists per identity.
Each item stores its variant → size → quantity tree as JSON and always
satisfies: every variant has at least one size line, every size line has a
positive quantity. An item whose tree becomes empty is removed.
"""

import json
from datetime import UTC, datetime

from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String, Text

from shopping.cart.events import (
    CartCleared,
    CartCouponApplied,
    CartCouponRemoved,
    CartCreated,
    CartDeactivated,
    CartItemAdded,
    CartItemRemoved,
    CartItemUpdated,
)
from shopping.cart.merging import (
    VariantChange,
    VariantQuantity,
    merge_additive,
    merge_overwrite,
    variants_from_json,
    variants_to_json,
)
from shopping.domain import shopping


@shopping.entity(part_of="Cart")
class CartItem:
    product_id = Identifier(required=True)
    design_id = Identifier()
    variant_quantities = Text(default="[]")  # JSON: [{variant_id, size_quantities: [{size_id, quantity}]}]
    is_selected = Boolean(default=False)
    is_design_item = Boolean(default=False)
    price = Float(default=0.0)  # Unit price snapshot taken when the item was created
    design_data = Text()  # JSON: design name and preview images
    added_at = DateTime()

    @property
    def variants(self) -> list[VariantQuantity]:
        return variants_from_json(self.variant_quantities)

    @property
    def quantity(self) -> int:
        return sum(vq.quantity for vq in self.variants)

    @property
    def design_preview(self) -> dict | None:
        return json.loads(self.design_data) if self.design_data else None

    def set_variants(self, variants: list[VariantQuantity]) -> None:
        self.variant_quantities = variants_to_json(variants)


@shopping.aggregate
class Cart:
    user_id = Identifier(required=True)
    items = HasMany(CartItem)
    is_active = Boolean(default=True)
    coupon_code = String(max_length=50)
    discount_total = Float(default=0.0)
    revision = Integer(default=0)  # Bumped on every persisted write; stale writers are rejected
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, user_id):
        now = datetime.now(UTC)
        cart = cls(
            user_id=user_id,
            is_active=True,
            discount_total=0.0,
            revision=0,
            created_at=now,
            updated_at=now,
        )
        cart.raise_(CartCreated(cart_id=str(cart.id), user_id=str(user_id)))
        return cart

    # -------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------
    def find_item(self, item_id) -> CartItem | None:
        return next((i for i in self.items if str(i.id) == str(item_id)), None)

    def get_item(self, item_id) -> CartItem:
        item = self.find_item(item_id)
        if item is None:
            raise ObjectNotFoundError("Cart item not found")
        return item

    def find_regular_item(self, product_id) -> CartItem | None:
        return next(
            (i for i in self.items if str(i.product_id) == str(product_id) and not i.design_id),
            None,
        )

    def find_design_item(self, design_id) -> CartItem | None:
        return next((i for i in self.items if i.design_id and str(i.design_id) == str(design_id)), None)

    @property
    def selected_items(self) -> list[CartItem]:
        return [i for i in self.items if i.is_selected]

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def _ensure_active(self, action):
        if not self.is_active:
            raise ValidationError({"cart": [f"Cannot {action} an inactive cart"]})

    def _touch(self):
        self.updated_at = datetime.now(UTC)

    def add_variants(
        self,
        product_id,
        changes: list[VariantChange],
        unit_price: float,
        is_selected: bool = False,
        design_id=None,
        design_data: dict | None = None,
    ) -> CartItem:
        """Accumulate quantities into the item for this product (or product + design).

        Creates the item on first add. Re-adding the same (variant, size)
        increases its quantity.
        """
        self._ensure_active("add items to")

        existing = self.find_design_item(design_id) if design_id else self.find_regular_item(product_id)
        quantity_added = sum(sq.quantity for change in changes for sq in change.positive_sizes)

        if existing is not None:
            existing.set_variants(merge_additive(existing.variants, changes))
            existing.is_selected = bool(is_selected)
            item = existing
        else:
            variants = merge_additive([], changes)
            if not variants:
                raise ValidationError({"variant_quantities": ["No valid variants provided"]})
            item = CartItem(
                product_id=product_id,
                design_id=design_id,
                variant_quantities=variants_to_json(variants),
                is_selected=bool(is_selected),
                is_design_item=design_id is not None,
                price=float(unit_price),
                design_data=json.dumps(design_data) if design_data else None,
                added_at=datetime.now(UTC),
            )
            self.add_items(item)

        self._touch()
        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                item_id=str(item.id),
                product_id=str(product_id),
                design_id=str(design_id) if design_id else None,
                quantity_added=quantity_added,
            )
        )
        return item

    def update_item(self, item_id, changes: list[VariantChange] | None = None, is_selected: bool | None = None) -> bool:
        """Overwrite quantities on an item and/or set its selection flag.

        Returns True when the item lost its last variant and was removed.
        """
        self._ensure_active("update items in")
        item = self.get_item(item_id)
        previous_quantity = item.quantity

        if is_selected is not None:
            item.is_selected = bool(is_selected)

        if changes is not None:
            merged = merge_overwrite(item.variants, changes)
            if not merged:
                self.remove_item(item_id, reason="emptied")
                return True
            item.set_variants(merged)

        self._touch()
        self.raise_(
            CartItemUpdated(
                cart_id=str(self.id),
                item_id=str(item.id),
                previous_quantity=previous_quantity,
                new_quantity=item.quantity,
            )
        )
        return False

    def remove_item(self, item_id, reason="removed"):
        self._ensure_active("remove items from")
        item = self.get_item(item_id)
        self.remove_items(item)
        self._touch()
        self.raise_(CartItemRemoved(cart_id=str(self.id), item_id=str(item_id), reason=reason))

    def discard_items(self, item_ids) -> int:
        """Silently drop items that can no longer be priced (deleted product, empty tree)."""
        dropped = 0
        for item_id in list(item_ids):
            item = self.find_item(item_id)
            if item is not None:
                self.remove_items(item)
                dropped += 1
                self.raise_(CartItemRemoved(cart_id=str(self.id), item_id=str(item_id), reason="unavailable"))
        if dropped:
            self._touch()
        return dropped

    def clear(self):
        self._ensure_active("clear")
        count = len(self.items)
        for item in list(self.items):
            self.remove_items(item)
        self._touch()
        self.raise_(CartCleared(cart_id=str(self.id), items_removed=count))

    # -------------------------------------------------------------------
    # Coupon management
    # -------------------------------------------------------------------
    def apply_coupon(self, coupon_code):
        """Attach a coupon by code. Validation happens in the coupon engine."""
        self._ensure_active("apply a coupon to")
        self.coupon_code = coupon_code
        self._touch()
        self.raise_(CartCouponApplied(cart_id=str(self.id), coupon_code=coupon_code))

    def remove_coupon(self, reason="removed by user"):
        previous = self.coupon_code
        self.coupon_code = None
        self.discount_total = 0.0
        self._touch()
        if previous:
            self.raise_(CartCouponRemoved(cart_id=str(self.id), coupon_code=previous, reason=reason))

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def deactivate(self):
        """Retire the cart after checkout; the next access creates a fresh one."""
        self._ensure_active("deactivate")
        self.is_active = False
        self._touch()
        self.raise_(CartDeactivated(cart_id=str(self.id), user_id=str(self.user_id)))
