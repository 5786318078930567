from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

# Tolerance for quantity comparisons (stock sufficiency, over-return)
EPSILON = Decimal("1e-9")

ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    """Coerce JSON numbers / numeric strings / DB values to Decimal."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        # repr round-trips; avoids binary float noise such as 0.1 -> 0.1000000000000000055
        return Decimal(repr(value))
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f"not a number: {value!r}")


def to_number(value: Any) -> int | float | None:
    """Render a Decimal for JSON: integral values as int, others as float."""
    if value is None:
        return None
    d = to_decimal(value)
    if d == d.to_integral_value():
        return int(d)
    return float(d)
