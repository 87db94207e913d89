# money.py  – currency text → float, tolerant of "1,234.56" / "12,34" / "£51.77"

import math
import re
from typing import List

# optional currency marker, then the earliest digit run (at most 11 chars:
# "$1,234,567.89" reads as 1234567.8)
MONEY_RE = re.compile(r"(USD|CAD|GBP|EUR|\$|£|€)?\s*([0-9][0-9.,-]{0,10})", re.I)

_LEADING_FLOAT = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)")


def _leading_float(s: str) -> float:
    """Parse the longest numeric prefix of ``s`` ("12.5-3" → 12.5); NaN if none."""
    m = _LEADING_FLOAT.match(s)
    if not m:
        return math.nan
    return float(m.group(0))


def parse_amount(text) -> float:
    """
    Turn one price fragment into a float.

    Separator rules:
      * both "," and "."  → commas are thousands, dot is decimal
      * only ","          → two digits after the last comma means decimal comma,
                            anything else means thousands commas
      * otherwise         → parse as-is
    Returns NaN for empty or unparseable input; never raises.
    """
    cleaned = re.sub(r"[^\d.,-]", "", str(text or ""))
    if "," in cleaned and "." in cleaned:
        cleaned = cleaned.replace(",", "")
    elif "," in cleaned:
        head, _, tail = cleaned.rpartition(",")
        if len(tail) == 2:
            cleaned = head.replace(",", "") + "." + tail
        else:
            cleaned = cleaned.replace(",", "")
    return _leading_float(cleaned)


def first_amount(text) -> float:
    """First money-looking token in ``text`` (currency marker optional), or NaN."""
    m = MONEY_RE.search(str(text or ""))
    if not m:
        return math.nan
    return parse_amount(m.group(2))


def all_amounts(text) -> List[float]:
    """Every finite money-looking token in ``text``, in order of appearance."""
    out = []
    for m in MONEY_RE.finditer(str(text or "")):
        val = parse_amount(m.group(2))
        if math.isfinite(val):
            out.append(val)
    return out


def plausible(values, low: float = 0.5, high: float = 50000) -> List[float]:
    """Keep values inside the plausible price bound, sorted ascending."""
    return sorted(v for v in values if low <= v <= high)


def as_price(value):
    """float if ``value`` is a usable (finite, non-negative) price, else None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = first_amount(value)
    elif not isinstance(value, (int, float)):
        return None
    value = float(value)
    if math.isfinite(value) and value >= 0:
        return value
    return None
