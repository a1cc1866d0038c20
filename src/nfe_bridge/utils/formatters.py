from __future__ import annotations

import re
from decimal import Decimal

_NON_DIGIT = re.compile(r"\D")


def only_digits(value: str | None) -> str:
    """Strip every non-digit character (dots, dashes, slashes, spaces, a leading +)."""
    if not value:
        return ""
    return _NON_DIGIT.sub("", str(value))


def format_brl(value: Decimal | str) -> str:
    """Format a numeric value as R$ X.XXX,XX."""
    d = Decimal(value)
    formatted = f"{d:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    return f"R$ {formatted}"
