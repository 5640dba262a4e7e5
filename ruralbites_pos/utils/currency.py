"""Currency formatting helpers for Rural Bites POS.

Menu prices, bill totals and discounts are all whole rupees, so amounts are
shown without decimals and with thousands grouping.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

_SYMBOLS = {"INR": "₹"}


def _to_decimal(amount: int | float | str | None) -> Decimal:
    if amount is None:
        return Decimal(0)
    try:
        return Decimal(str(amount))
    except (InvalidOperation, ValueError, TypeError):
        return Decimal(0)


def format_rupees(amount: int | float | str | None, currency: str = "INR") -> str:
    """Return ``₹1,234`` style text for *amount* (rounded to whole units)."""

    whole = int(_to_decimal(amount).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    sign = "-" if whole < 0 else ""
    display = f"{abs(whole):,}"
    symbol = _SYMBOLS.get(currency.upper(), f"{currency} " if currency else "")
    return f"{sign}{symbol}{display}"
