"""In-memory catalog adapter for development and testing.

Holds resolved views directly. Tests seed it with ``add_product``,
``add_size`` and ``add_design`` and can simulate catalog drift (a product
being deleted, a variant going out of stock) between cart operations.
"""

from dataclasses import replace

from shopping.catalog.port import (
    CatalogGateway,
    ResolvedDesign,
    ResolvedProduct,
    ResolvedSize,
    StockStatus,
)


class InMemoryCatalog(CatalogGateway):
    def __init__(self) -> None:
        self.products: dict[str, ResolvedProduct] = {}
        self.sizes: dict[str, ResolvedSize] = {}
        self.designs: dict[str, ResolvedDesign] = {}

    # -- seeding -----------------------------------------------------------
    def add_product(self, product: ResolvedProduct) -> ResolvedProduct:
        self.products[product.product_id] = product
        return product

    def add_size(self, size_id: str, name: str) -> ResolvedSize:
        size = ResolvedSize(size_id=size_id, name=name)
        self.sizes[size_id] = size
        return size

    def add_design(self, design: ResolvedDesign) -> ResolvedDesign:
        self.designs[design.design_id] = design
        return design

    def remove_product(self, product_id: str) -> None:
        self.products.pop(product_id, None)

    def set_variant_stock_status(self, product_id: str, variant_id: str, status: StockStatus) -> None:
        product = self.products[product_id]
        variants = tuple(
            replace(v, stock_status=status) if v.variant_id == variant_id else v for v in product.variants
        )
        self.products[product_id] = replace(product, variants=variants)

    def update_product(self, product_id: str, **changes) -> ResolvedProduct:
        self.products[product_id] = replace(self.products[product_id], **changes)
        return self.products[product_id]

    # -- port --------------------------------------------------------------
    def get_product(self, product_id: str) -> ResolvedProduct | None:
        return self.products.get(str(product_id))

    def get_size(self, size_id: str) -> ResolvedSize | None:
        return self.sizes.get(str(size_id))

    def get_active_user_design(self, user_id: str, design_id: str) -> ResolvedDesign | None:
        design = self.designs.get(str(design_id))
        if design is None or design.user_id != str(user_id) or not design.is_active:
            return None
        return design
