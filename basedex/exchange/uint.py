"""
Checked unsigned 256-bit arithmetic.

Reserves and shares are plain Python ints, which never wrap. These helpers
keep every intermediate within [0, MAX_UINT256] and raise
ArithmeticOverflow instead of producing a value a 256-bit ledger could not
hold.
"""

from __future__ import annotations

import math

from ..constants import MAX_UINT256
from ..exceptions import ArithmeticOverflow, InvalidAmount


def check(value: int, what: str = "value") -> int:
    if value < 0 or value > MAX_UINT256:
        raise ArithmeticOverflow(f"{what} out of uint256 range: {value}")
    return value


def add(a: int, b: int) -> int:
    return check(a + b, "sum")


def sub(a: int, b: int) -> int:
    if b > a:
        raise ArithmeticOverflow(f"subtraction underflow: {a} - {b}")
    return a - b


def mul(a: int, b: int) -> int:
    if a and b > MAX_UINT256 // a:
        raise ArithmeticOverflow(f"product out of uint256 range: {a} * {b}")
    return a * b


def mul_div(a: int, b: int, denominator: int) -> int:
    """floor(a * b / denominator) with the product checked first."""
    if denominator == 0:
        raise ZeroDivisionError("mul_div by zero")
    return mul(a, b) // denominator


def isqrt(value: int) -> int:
    return math.isqrt(check(value))


def require_amount(value: int, name: str, positive: bool = False) -> int:
    """Validate a caller-supplied amount."""
    if not isinstance(value, int) or isinstance(value, bool):
        raise InvalidAmount(f"{name} must be an integer (got {type(value).__name__})")
    if value < 0 or (positive and value == 0):
        raise InvalidAmount(f"{name} must be {'positive' if positive else 'non-negative'} (got {value})")
    return check(value, name)
