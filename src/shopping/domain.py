"""Shopping bounded context — Cart Aggregation and Coupon Pricing.

Maintains one active cart per user whose items are product → color variant →
size → quantity trees, prices them into layered totals, and applies
category-scoped, usage-limited coupons consistently across those totals.
"""

from protean.domain import Domain

from shopping.utils.logging import configure_logging, get_logger

# Configure logging for the application
configure_logging()

logger = get_logger(__name__)

# Domain Composition Root
shopping = Domain(name="shopping")
