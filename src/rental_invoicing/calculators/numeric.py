"""Tolerant numeric parsing for money values crossing a boundary.

Form fields, database rows and AI output all pass through here before any
arithmetic. Parsing never raises: unparseable input resolves to a fallback.
"""

from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation, getcontext
from typing import Any

ZERO = Decimal("0")
CENTS = Decimal("0.01")

# Leading decimal literal, as parseFloat-style parsers accept it ("12.5kg" -> 12.5)
_NUMERIC_PREFIX = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def safe_parse_number(value: Any, fallback: Decimal = ZERO) -> Decimal:
    """Parse value as a finite Decimal, returning fallback when that fails.

    Returns fallback for None, empty or whitespace strings, booleans,
    non-finite numbers and anything without a leading numeric literal.
    """
    if value is None or isinstance(value, bool):
        return fallback

    if isinstance(value, Decimal):
        return value if value.is_finite() else fallback

    if isinstance(value, int):
        return Decimal(value)

    if isinstance(value, float):
        # str() keeps the shortest repr: 25.5 -> Decimal("25.5")
        parsed = Decimal(str(value))
        return parsed if parsed.is_finite() else fallback

    if isinstance(value, str):
        match = _NUMERIC_PREFIX.match(value.strip())
        if match is None:
            return fallback
        try:
            parsed = Decimal(match.group(0))
        except InvalidOperation:
            return fallback
        return parsed if parsed.is_finite() else fallback

    return fallback


def safe_parse_int(value: Any, fallback: int) -> int:
    """Parse a whole count (quantity, days), truncating toward zero."""
    parsed = safe_parse_number(value, fallback=Decimal(fallback))
    return int(parsed)


def round_to_cents(amount: Decimal) -> Decimal:
    """Round amount to 2 decimal places (cents), whatever its magnitude."""
    # quantize() signals InvalidOperation once the result outgrows the precision,
    # so widen it to the integer digits, two places and a rounding carry
    digits = amount.adjusted() + 4 if amount.is_finite() else 0
    context = Context(prec=max(getcontext().prec, digits))
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP, context=context)
