"""Money helpers — one numeric type (Decimal) through the whole pricing pipeline.

Inputs (unit prices, percentage rates) stay exact; only the result of an
atomic contribution (a size line, a discount) is rounded half-up to cents.
Aggregates are plain sums of already-rounded values, so recomputing a cart
always yields the same figures.
"""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value) -> Decimal:
    """Exact Decimal for an int, float, str or Decimal, without rounding."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    # str() keeps 0.1 as 0.1 instead of its binary float expansion
    return Decimal(str(value))


def to_money(value) -> Decimal:
    """Convert an int, float, str or Decimal into a cent-rounded Decimal."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(unit_price, quantity: int) -> Decimal:
    return to_money(to_decimal(unit_price) * quantity)


def percent_of(amount, rate) -> Decimal:
    """``amount * rate / 100`` rounded once, with the rate kept exact."""
    return to_money(to_decimal(amount) * to_decimal(rate) / Decimal(100))


def clamp_non_negative(amount: Decimal) -> Decimal:
    return amount if amount > ZERO else ZERO


def as_float(amount: Decimal) -> float:
    """Render a money amount for a JSON response."""
    return float(to_money(amount))
