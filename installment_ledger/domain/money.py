"""Fixed-point money helpers"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

from installment_ledger.domain.exceptions import ValidationError

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


def money(x) -> Decimal:
    """Always return 2-decimal Decimal with HALF_UP rounding."""
    if x is None:
        x = 0
    if not isinstance(x, Decimal):
        try:
            x = Decimal(str(x))
        except InvalidOperation as e:
            raise ValidationError(f"Invalid monetary amount: {x!r}") from e
    if not x.is_finite():
        raise ValidationError(f"Invalid monetary amount: {x!r}")
    return x.quantize(CENT, rounding=ROUND_HALF_UP)


def non_negative_money(x, field: str) -> Decimal:
    """Round to cents and reject negative values"""
    value = money(x)
    if value < ZERO:
        raise ValidationError(f"{field} cannot be negative", field=field)
    return value
