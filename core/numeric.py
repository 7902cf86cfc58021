"""
Core Module - Numeric Helpers.

Python's round() rounds halves to even; scores and durations
here round halves away from zero.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Union


Number = Union[int, float, Decimal]


def round_half_up(value: Number, digits: int = 0) -> Union[int, float]:
    """
    Round with halves away from zero.

    Returns an int when digits == 0, else a float.
    """
    exponent = Decimal(1).scaleb(-digits)
    rounded = Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP)
    if digits == 0:
        return int(rounded)
    return float(rounded)


def percentage(part: Number, whole: Number, digits: int = 2) -> float:
    """part / whole as a percentage, 0.0 when whole is zero."""
    if not whole:
        return 0.0
    return float(round_half_up(float(part) / float(whole) * 100, digits))


def clamp(value: Number, lower: Number = 0, upper: Number = 100) -> Number:
    return max(lower, min(upper, value))
