import os
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest


@pytest.fixture(scope="session")
def _shopping_domain(request):
    """Initialize the shopping domain once per session."""
    os.environ["PROTEAN_ENV"] = request.config.option.env

    from shopping.domain import shopping

    shopping.init()
    return shopping


@pytest.fixture(autouse=True)
def run_around_tests(_shopping_domain):
    """Push domain context before each test, cleanup after."""
    ctx = _shopping_domain.domain_context()
    ctx.push()

    yield

    from protean import current_domain

    for _, provider in current_domain.providers.items():
        provider._data_reset()

    current_domain.event_store.store._data_reset()
    ctx.pop()


@pytest.fixture(autouse=True)
def catalog():
    """A fresh in-memory catalog with a t-shirt, a mug and one user design.

    prod-tee   50.00  cat-tees  var-black (S/M/L, stock 10), var-white (S/M), var-red (stocked out)
    prod-mug   12.50  cat-mugs  var-blue (ONE)
    design-1   owned by user-1, printed on prod-tee
    """
    from shopping.catalog import reset_catalog, set_catalog
    from shopping.catalog.memory_adapter import InMemoryCatalog
    from shopping.catalog.port import ResolvedDesign, ResolvedProduct, ResolvedVariant, StockStatus

    catalog = InMemoryCatalog()
    for size_id, name in (("size-s", "S"), ("size-m", "M"), ("size-l", "L"), ("size-one", "ONE")):
        catalog.add_size(size_id, name)

    catalog.add_product(
        ResolvedProduct(
            product_id="prod-tee",
            name="Classic Tee",
            discounted_price=Decimal("50.00"),
            price=Decimal("60.00"),
            brand="Acme",
            category_id="cat-tees",
            variants=(
                ResolvedVariant(
                    variant_id="var-black",
                    color="Black",
                    color_hex="#000000",
                    size_ids=("size-s", "size-m", "size-l"),
                    stock=10,
                    images={"front_image": "black-front.png"},
                ),
                ResolvedVariant(variant_id="var-white", color="White", size_ids=("size-s", "size-m")),
                ResolvedVariant(
                    variant_id="var-red",
                    color="Red",
                    size_ids=("size-m",),
                    stock_status=StockStatus.STOCKOUT,
                ),
            ),
        )
    )
    catalog.add_product(
        ResolvedProduct(
            product_id="prod-mug",
            name="Coffee Mug",
            discounted_price=Decimal("12.50"),
            category_id="cat-mugs",
            variants=(ResolvedVariant(variant_id="var-blue", color="Blue", size_ids=("size-one",)),),
        )
    )
    catalog.add_design(
        ResolvedDesign(
            design_id="design-1",
            user_id="user-1",
            base_product_id="prod-tee",
            name="Sunset",
            front_image="sunset-front.png",
        )
    )

    set_catalog(catalog)
    yield catalog
    reset_catalog()


@pytest.fixture()
def make_coupon():
    """Persist a coupon valid from yesterday until tomorrow unless overridden."""
    from protean.utils.globals import current_domain
    from shopping.coupon.coupon import Coupon

    def _make(code="SAVE10", discount_type="PERCENTAGE", discount_value=10.0, **overrides):
        now = datetime.now(UTC)
        fields = {
            "code": code,
            "name": f"{code} promotion",
            "discount_type": discount_type,
            "discount_value": discount_value,
            "start_date": now - timedelta(days=1),
            "end_date": now + timedelta(days=1),
        }
        fields.update(overrides)
        coupon = Coupon.create(**fields)
        current_domain.repository_for(Coupon).add(coupon)
        return coupon

    return _make
