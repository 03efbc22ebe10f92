"""Currency presentation helpers.

Amounts are kept unrounded in storage and arithmetic; rounding happens here.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

CENT = Decimal("0.01")


def round_money(value: Union[Decimal, int, str]) -> Decimal:
    """Round to cents, half up."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_currency(value: Union[Decimal, int, str], symbol: str = "RD$") -> str:
    """Format an amount for display, e.g. ``RD$1,234.50`` or ``-RD$50.00``."""
    rounded = round_money(value)
    sign = "-" if rounded < 0 else ""
    return f"{sign}{symbol}{abs(rounded):,.2f}"
