"""Price parsing with an explicit provider format"""

import re
from typing import Optional

from .settings import PriceFormat

_SPACES = {"\u00a0": " ", "\u202f": " ", "\u2009": " "}


def parse_price(text: Optional[str], fmt: Optional[PriceFormat] = None) -> Optional[float]:
    """
    Parse the first amount in a rendered price string.

    The separators come from configuration. "1.234" is 1.234 under the
    default format and 1234 under a comma-decimal one; nothing is guessed.

    Args:
        text: Rendered price, e.g. "US$1,234" or "€ 1.234,50"
        fmt: Provider price format (defaults to "." decimal, "," thousands)

    Returns:
        Amount as float, or None when no amount could be read
    """
    if not text:
        return None
    fmt = fmt or PriceFormat()

    normalized = text
    for raw, replacement in _SPACES.items():
        normalized = normalized.replace(raw, replacement)

    separators = re.escape(fmt.thousands_separator + fmt.decimal_separator)
    match = re.search(rf"\d[\d{separators}]*", normalized)
    if not match:
        return None

    token = match.group(0).rstrip(fmt.thousands_separator + fmt.decimal_separator)
    if fmt.thousands_separator:
        token = token.replace(fmt.thousands_separator, "")
    token = token.replace(fmt.decimal_separator, ".")

    try:
        return float(token)
    except ValueError:
        return None


def per_night(total: float, nights: int) -> float:
    """Per-night price to the cent; nights below 1 count as 1"""
    return round(total / max(1, nights), 2)
