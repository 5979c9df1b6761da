from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

# Money is stored as integer cents; JSON carries decimal currency amounts.


def to_cents(value: Any) -> int:
    """
    Currency amount (12.5, "12.50", 12) -> 1250.

    Rounds half-up to the cent. Raises ValueError for booleans, blanks,
    non-numeric text, NaN and infinities.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Not a currency amount: {value!r}")
    text = str(value).strip()
    if not text:
        raise ValueError("Blank currency amount")
    try:
        amount = Decimal(text)
    except InvalidOperation:
        raise ValueError(f"Not a currency amount: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Not a finite currency amount: {value!r}")
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int | None) -> float | None:
    """1250 -> 12.5 for JSON output."""
    if cents is None:
        return None
    return int(cents) / 100
