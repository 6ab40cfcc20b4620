"""
Price parsing for upstream offers.
Upstream prices arrive as plain numbers, localized strings ("1 234,56 €",
"€99.99") or price ranges (["€10", "€20"]).
"""
import math
import re
from typing import Any, Optional

_NON_PRICE_CHARS = re.compile(r"[^\d,.]")


def parse_price(raw: Any) -> Optional[float]:
    """
    Extract a numeric price from a heterogeneous representation.

    Returns None when nothing usable can be parsed. Range validation
    (0 < price <= max price) is left to the caller.
    """
    if raw is None or isinstance(raw, bool):
        return None

    if isinstance(raw, (int, float)):
        value = float(raw)
        if math.isfinite(value) and value > 0:
            return value
        return None

    if isinstance(raw, (list, tuple)):
        if not raw:
            return None
        return parse_price_text(raw[0]) if isinstance(raw[0], str) else None

    if isinstance(raw, str):
        return parse_price_text(raw)

    return None


def parse_price_text(text: str) -> Optional[float]:
    """Parse a localized price string; the last comma is the decimal separator."""
    cleaned = _NON_PRICE_CHARS.sub("", text)
    if not cleaned:
        return None

    comma = cleaned.rfind(",")
    if comma != -1:
        cleaned = cleaned[:comma] + "." + cleaned[comma + 1:]
    cleaned = cleaned.replace(",", "")

    # "1.234.56" (thousands dot + decimal comma): only the last dot is decimal
    if cleaned.count(".") > 1:
        head, _, tail = cleaned.rpartition(".")
        cleaned = head.replace(".", "") + "." + tail

    try:
        value = float(cleaned)
    except ValueError:
        return None

    if not math.isfinite(value):
        return None
    return value


def is_valid_price(price: Optional[float], max_price: float) -> bool:
    """Check 0 < price <= max_price."""
    return price is not None and 0 < price <= max_price
