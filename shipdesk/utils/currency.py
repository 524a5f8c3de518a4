"""Rupee formatting for screens, reports and exports."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any


SYMBOL = "₹"
CODE = "INR"

_CENTS = Decimal("0.01")
_COMPACT_STEPS = (
    (Decimal("10000000"), "Cr", Decimal("0.01")),
    (Decimal("100000"), "L", Decimal("0.01")),
    (Decimal("1000"), "K", Decimal("0.1")),
)


def parse_amount(value: Any) -> Decimal:
    if value is None or isinstance(value, bool):
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return Decimal("0")
    return amount if amount.is_finite() else Decimal("0")


def export_format(value: Any) -> str:
    """Two decimals, no symbol."""

    return format(parse_amount(value).quantize(_CENTS, rounding=ROUND_HALF_UP), "f")


def display(value: Any) -> str:
    return f"{SYMBOL}{export_format(value)}"


def format_amount(value: Any, *, compact: bool = False) -> str:
    """Display form; ``compact`` shortens to crore, lakh or thousand."""

    amount = parse_amount(value)
    if compact:
        for threshold, suffix, places in _COMPACT_STEPS:
            if amount >= threshold:
                scaled = (amount / threshold).quantize(places, rounding=ROUND_HALF_UP)
                return f"{SYMBOL}{format(scaled, 'f')}{suffix}"
    return display(amount)
