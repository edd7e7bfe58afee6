# core/money.py

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def money(value) -> Decimal:
    """
    Normalize any numeric-ish input to a 2dp Decimal.

    Floats go through str() so 0.1 stays 0.10 and never 0.1000000000000000055.
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, float):
        value = str(value)
    try:
        return Decimal(value).quantize(TWOPLACES, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValueError(f"Invalid money amount: {value!r}") from exc
