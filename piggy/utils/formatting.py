"""
Presentation helpers for INR amounts and percentages.
Rounding happens here, at the presentation boundary only.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Number = Union[Decimal, int, float, str]

PAISA = Decimal("0.01")
RUPEE = Decimal("1")


def to_decimal(value: Number) -> Decimal:
    """Coerce a number to Decimal without binary float artifacts."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize_money(value: Number) -> Decimal:
    """Round to currency minor units (paisa)."""
    return to_decimal(value).quantize(PAISA, rounding=ROUND_HALF_UP)


def _group_indian(digits: str) -> str:
    # 1234567 -> 12,34,567
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])


def format_currency(amount: Number, decimals: int = 0) -> str:
    """
    Format an amount as en-IN rupees, e.g. ₹12,34,567.
    """
    exponent = RUPEE if decimals == 0 else Decimal(1).scaleb(-decimals)
    value = to_decimal(amount).quantize(exponent, rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    whole, _, fraction = f"{abs(value):f}".partition(".")
    text = _group_indian(whole)
    if fraction:
        text = f"{text}.{fraction}"
    return f"{sign}₹{text}"


def format_percentage(value: Number) -> str:
    """Signed percentage with two decimals, e.g. +3.25%."""
    pct = quantize_money(value)
    sign = "+" if pct >= 0 else ""
    return f"{sign}{pct}%"
