"""Money helpers. All amounts are Decimal, rounded half-up to cents."""

from decimal import ROUND_HALF_UP, Decimal

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if value is None:
        return ZERO
    # str() first so floats like 0.1 keep their printed value
    return Decimal(str(value))


def round_money(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_minor_units(value) -> int:
    """Convert an amount to integer cents."""
    return int((round_money(value) * 100).to_integral_value(rounding=ROUND_HALF_UP))
