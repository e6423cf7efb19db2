"""Fixed-point unit conversion between whole-token notation and base units.

The pool only ever sees integers in base units (10**18 per token). These
helpers exist for the edges: CLI input, status output, and tests that
want to write ``parse_units("10")`` instead of a nineteen-digit literal.
All conversion goes through Decimal. No floats.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, localcontext
from typing import Union

DECIMALS = 18
ONE = 10 ** DECIMALS
PROMILLE_SCALE = 1000
DAY_SECONDS = 24 * 60 * 60


def parse_units(value: Union[str, int, Decimal], decimals: int = DECIMALS) -> int:
    """Convert a whole-token amount ("1.5") into integer base units.

    Raises ValueError if the value is not a number, is negative, or has
    more fractional digits than ``decimals`` allows.
    """
    if isinstance(value, float):
        raise TypeError("Floats are not accepted; pass a str or Decimal")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValueError(f"Not a decimal amount: {value!r}") from exc
    if not amount.is_finite() or amount < 0:
        raise ValueError(f"Amount must be a finite, non-negative number: {value!r}")

    with localcontext() as ctx:
        ctx.prec = 100
        scaled = amount.scaleb(decimals)
        if scaled != scaled.to_integral_value():
            raise ValueError(
                f"Amount {value!r} has more than {decimals} fractional digits"
            )
        return int(scaled)


def format_units(amount: int, decimals: int = DECIMALS) -> str:
    """Render integer base units as a whole-token decimal string."""
    with localcontext() as ctx:
        ctx.prec = 100
        text = format(Decimal(amount).scaleb(-decimals), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text
