"""
Decimal Coercion - Turn heterogeneous numeric encodings into Decimal.

Upstream APIs send amounts as localized strings ("1234,56"), JSON numbers,
or small wrappers such as {"value": "12.00"}. Everything passes through
``coerce_decimal`` so no binary float ever reaches a balance.
"""

from decimal import Decimal, InvalidOperation, getcontext
from typing import Any, Optional


# Keys tried, in order, when an amount arrives wrapped in an object
VALUE_KEYS = ("value", "amount")


def coerce_decimal(value: Any, _depth: int = 1) -> Optional[Decimal]:
    """
    Convert a loosely typed value to an exact Decimal.

    Args:
        value: str, int, float, Decimal, a mapping with a value-like
            field, or a single-element list
        _depth: how many container levels may still be unwrapped

    Returns:
        Finite Decimal, or None when the value is not a number.
        Never raises.
    """
    # bool is an int subclass but never an amount
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, Decimal):
        return _bounded(value)

    if isinstance(value, int):
        return _bounded(Decimal(value))

    if isinstance(value, float):
        # repr() is the shortest text that round-trips, so 1234.56 stays 1234.56
        return _parse(repr(value))

    if isinstance(value, str):
        return _parse(value.strip().replace(",", "."))

    if _depth <= 0:
        return None

    if isinstance(value, dict):
        for key in VALUE_KEYS:
            if key in value:
                return coerce_decimal(value[key], _depth - 1)
        return None

    if isinstance(value, (list, tuple)) and len(value) == 1:
        return coerce_decimal(value[0], _depth - 1)

    return None


def _parse(text: str) -> Optional[Decimal]:
    if not text:
        return None
    try:
        result = Decimal(text)
    except (InvalidOperation, ValueError):
        return None
    return _bounded(result)


def _bounded(value: Decimal) -> Optional[Decimal]:
    # Exponents outside the context range overflow on the first addition
    if not value.is_finite():
        return None
    context = getcontext()
    if value and not context.Emin <= value.adjusted() <= context.Emax:
        return None
    return value
