import html
import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

import bleach

CENT = Decimal("0.01")


def round_money(value: Decimal) -> Decimal:
    """Quantize a money amount to cents, rounding half up."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(unit_price: Decimal, quantity: int) -> Decimal:
    return round_money(Decimal(unit_price) * quantity)


def sanitize_input(value: Optional[str]) -> str:
    """Sanitize a user-supplied string before it is stored on an order.

    - Strips HTML tags using bleach.clean(..., strip=True)
    - Unescapes the entities bleach produced, so '&' and '<' are stored as typed
    - Collapses runs of whitespace and trims

    Punctuation is kept as-is; values only ever reach SQL as bound parameters.
    """
    if value is None:
        return ""
    val = value.replace("\x00", "")
    val = html.unescape(bleach.clean(val, tags=[], strip=True))
    val = re.sub(r"\s+", " ", val)
    return val.strip()
