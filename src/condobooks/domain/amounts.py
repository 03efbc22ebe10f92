"""Conversion of user-supplied numbers to Decimal."""

from decimal import Decimal

from condobooks.domain.errors import ValidationError


def to_decimal(value, name: str) -> Decimal:
    """Return value as a finite Decimal.

    Floats go through their string form, so 0.1 becomes Decimal("0.1").

    Args:
        value: Decimal, int, float or numeric string
        name: Field name for the error message, e.g. "Amount"

    Raises:
        ValidationError: If value is not a number or is NaN or infinite
    """
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except ArithmeticError as e:
        raise ValidationError(f"{name} must be a number") from e
    if not result.is_finite():
        raise ValidationError(f"{name} must be a finite number")
    return result
