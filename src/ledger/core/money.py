"""
Money parsing and formatting.

Amounts are whole currency units held as Python ints. Parsing follows the
JavaScript parseFloat rule the CSV files were produced against: the longest
leading decimal literal is used and trailing junk is ignored.
"""

import math
import re
from typing import Optional

# Currency symbols, thousands separators and whitespace removed before parsing
_STRIP_PATTERN = re.compile(r"[₹$€£¥,\s]")

_LEADING_FLOAT = re.compile(
    r"^[+-]?(?:Infinity|(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?)"
)

# Literals without exponent or Infinity are floored exactly, with no float rounding
_PLAIN_DECIMAL = re.compile(r"^([+-]?)([0-9]*)(?:\.([0-9]*))?$")


def clean_amount(value: str) -> str:
    """Strip currency symbols, separators and whitespace."""
    return _STRIP_PATTERN.sub("", value)


def parse_float_prefix(value: str) -> float:
    """
    Parse the leading numeric literal of a string.

    Returns NaN when no literal is present; "Infinity" parses to inf.
    """
    match = _LEADING_FLOAT.match(value)
    if match is None:
        return math.nan
    return float(match.group(0).replace("Infinity", "inf"))


def parse_amount(value: str) -> Optional[int]:
    """
    Parse a user-entered amount into whole currency units.

    Args:
        value: Raw text such as "₹1,25,000.75"

    Returns:
        The floored integer amount, or None if the text is not a finite number
    """
    cleaned = clean_amount(value)
    match = _LEADING_FLOAT.match(cleaned)
    if match is None:
        return None

    plain = _PLAIN_DECIMAL.match(match.group(0))
    if plain is not None:
        sign, whole, fraction = plain.groups()
        amount = int(whole or "0")
        if sign == "-":
            has_fraction = bool(fraction and fraction.strip("0"))
            amount = -(amount + 1) if has_fraction else -amount
        return amount

    number = parse_float_prefix(cleaned)
    if not math.isfinite(number):
        return None
    return int(math.floor(number))


def format_money(amount: int, symbol: str = "₹") -> str:
    """
    Format an amount with Indian digit grouping (12,34,567).
    """
    sign = "-" if amount < 0 else ""
    digits = str(abs(amount))
    if len(digits) > 3:
        head, tail = digits[:-3], digits[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        digits = ",".join(groups + [tail])
    return f"{sign}{symbol}{digits}"
