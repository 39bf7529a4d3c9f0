"""
Money arithmetic: every amount, price and cost basis in the ledger is a Decimal.

Floats from providers are converted through str() so 0.1 stays 0.1.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Union

Number = Union[Decimal, int, float, str]

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")


def to_decimal(value: Number | None, default: Decimal | None = ZERO) -> Decimal | None:
    """Convert value to Decimal. None, NaN, infinities and garbage return default."""
    if value is None:
        return default
    if isinstance(value, Decimal):
        return value if value.is_finite() else default
    if isinstance(value, bool):
        return default
    try:
        out = Decimal(str(value).strip().replace(",", "")) if isinstance(value, str) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default
    return out if out.is_finite() else default


def safe_div(numerator: Decimal, denominator: Decimal, default: Decimal = ZERO) -> Decimal:
    """numerator / denominator, or default when the denominator is zero."""
    if denominator == 0:
        return default
    return numerator / denominator


def pct(part: Decimal, whole: Decimal) -> Decimal:
    """part as a percentage of whole; 0 when whole is not positive."""
    if whole <= 0:
        return ZERO
    return part / whole * HUNDRED
