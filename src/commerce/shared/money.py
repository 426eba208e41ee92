"""Money arithmetic helpers.

Amounts are persisted as floats, but every calculation passes through
``Decimal`` and is rounded half-up to cents so that order totals add up
exactly.
"""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


def to_decimal(amount) -> Decimal:
    if amount is None:
        return Decimal("0")
    if isinstance(amount, Decimal):
        return amount
    return Decimal(str(amount))


def quantize(amount) -> Decimal:
    return to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def to_amount(amount) -> float:
    """Round to cents and return the float representation stored on aggregates."""
    return float(quantize(amount))


def line_total(unit_price, quantity: int) -> Decimal:
    return quantize(to_decimal(unit_price) * quantity)


def grand_total(subtotal, discount, shipping, tax) -> Decimal:
    return quantize(to_decimal(subtotal) - to_decimal(discount) + to_decimal(shipping) + to_decimal(tax))
