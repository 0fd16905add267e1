"""Catalog lookup port (abstract interface).

Products, sizes and user designs are owned by other parts of the platform.
The cart engine only ever sees the resolved views below, assembled once per
request by an adapter, so validation and pricing never touch raw catalog
documents.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum


class StockStatus(Enum):
    IN_STOCK = "IN_STOCK"
    LOW_STOCK = "LOW_STOCK"
    STOCKOUT = "STOCKOUT"


@dataclass(frozen=True)
class ResolvedVariant:
    """A color variant of a product and the sizes it is offered in."""

    variant_id: str
    color: str | None = None
    color_hex: str | None = None
    size_ids: tuple[str, ...] = ()
    stock_status: StockStatus = StockStatus.IN_STOCK
    stock: int | None = None
    images: dict = field(default_factory=dict)

    @property
    def is_stocked_out(self) -> bool:
        return self.stock_status == StockStatus.STOCKOUT

    @property
    def label(self) -> str:
        return self.color or self.variant_id

    def offers_size(self, size_id: str) -> bool:
        return size_id in self.size_ids


@dataclass(frozen=True)
class ResolvedProduct:
    product_id: str
    name: str
    discounted_price: Decimal
    price: Decimal | None = None
    brand: str | None = None
    category_id: str | None = None
    thumbnail: str | None = None
    stock_status: StockStatus = StockStatus.IN_STOCK
    stock: int | None = None
    variants: tuple[ResolvedVariant, ...] = ()

    @property
    def is_stocked_out(self) -> bool:
        return self.stock_status == StockStatus.STOCKOUT

    def variant(self, variant_id: str) -> ResolvedVariant | None:
        return next((v for v in self.variants if v.variant_id == variant_id), None)


@dataclass(frozen=True)
class ResolvedSize:
    size_id: str
    name: str


@dataclass(frozen=True)
class ResolvedDesign:
    """A user-authored design printed on a base product."""

    design_id: str
    user_id: str
    base_product_id: str
    name: str
    front_image: str | None = None
    back_image: str | None = None
    left_image: str | None = None
    right_image: str | None = None
    is_active: bool = True

    def preview(self) -> dict:
        return {
            "design_name": self.name,
            "front_image": self.front_image,
            "back_image": self.back_image,
            "left_image": self.left_image,
            "right_image": self.right_image,
        }


class CatalogGateway(ABC):
    """Abstract catalog lookup interface."""

    @abstractmethod
    def get_product(self, product_id: str) -> ResolvedProduct | None:
        """Return the product with its variants, or None if it no longer exists."""
        ...

    @abstractmethod
    def get_size(self, size_id: str) -> ResolvedSize | None:
        """Return a size's display data, or None if unknown."""
        ...

    @abstractmethod
    def get_active_user_design(self, user_id: str, design_id: str) -> ResolvedDesign | None:
        """Return the design if it exists, belongs to the user and is active."""
        ...

    def get_products(self, product_ids) -> dict[str, ResolvedProduct]:
        products = {}
        for product_id in set(product_ids):
            product = self.get_product(product_id)
            if product is not None:
                products[product_id] = product
        return products

    def get_sizes(self, size_ids) -> dict[str, ResolvedSize]:
        sizes = {}
        for size_id in set(size_ids):
            size = self.get_size(size_id)
            if size is not None:
                sizes[size_id] = size
        return sizes
