"""Rounding helpers for whole-rupee amounts."""
from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

_WHOLE_UNIT = Decimal("1")


def to_rate(value: Any) -> Decimal:
    """Convert a configured rate such as ``"0.05"`` into a :class:`Decimal`."""
    if isinstance(value, Decimal):
        rate = value
    else:
        try:
            rate = Decimal(str(value))
        except (InvalidOperation, ValueError) as exc:
            raise ValueError(f"invalid rate: {value!r}") from exc
    if not rate.is_finite() or rate < 0:
        raise ValueError(f"invalid rate: {value!r}")
    return rate


def round_half_up(value: Any) -> int:
    """Round to the nearest whole unit; exact halves round away from zero."""
    amount = value if isinstance(value, Decimal) else Decimal(str(value))
    return int(amount.quantize(_WHOLE_UNIT, rounding=ROUND_HALF_UP))


def percent_of(amount: int, rate: Any) -> int:
    return round_half_up(Decimal(int(amount)) * to_rate(rate))
