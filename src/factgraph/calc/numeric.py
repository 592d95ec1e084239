"""Parse human-readable numeric strings.

    "$350 billion" -> 350000000000
    "$3.4 million" -> 3400000
    "$76,001/year" -> 76001
    "1,900"        -> 1900
    "40%"          -> 0.4

Ranges ("10 to 20", "5-10") and open-ended values ("300,000+") are
ambiguous and return None rather than a guess.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Final

_MULTIPLIERS: Final[dict[str, Decimal]] = {
    "": Decimal(1),
    "thousand": Decimal("1e3"),
    "million": Decimal("1e6"),
    "billion": Decimal("1e9"),
    "trillion": Decimal("1e12"),
}

_PERCENT_RE: Final = re.compile(r"^(\d+(?:\.\d+)?)%$")
_AMOUNT_RE: Final = re.compile(
    r"^\$?([\d,.]+)\s*(thousand|million|billion|trillion)?\s*(?:/\w+)?$",
    re.IGNORECASE,
)
_RANGE_RE: Final = re.compile(r"\d+-\d")


def parse_numeric_value(value: str | None) -> Decimal | None:
    """Return the magnitude a display string denotes, or None if unclear."""
    if not value or not isinstance(value, str):
        return None
    s = value.strip()
    if " to " in s or _RANGE_RE.search(s):
        return None
    if "+" in s and not s.startswith("+"):
        return None

    pct = _PERCENT_RE.match(s)
    if pct:
        return Decimal(pct.group(1)) / 100

    amount = _AMOUNT_RE.match(s)
    if amount is None:
        return None
    digits = amount.group(1).replace(",", "")
    try:
        number = Decimal(digits)
    except InvalidOperation:
        return None
    return number * _MULTIPLIERS[(amount.group(2) or "").lower()]
