"""Bill arithmetic: subtotal, tax, clamped discount and grand total."""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping

from ..core.money import percent_of, to_rate
from .catalog import MenuCatalog

DEFAULT_TAX_RATE = Decimal("0.05")


@dataclass(frozen=True, slots=True)
class Totals:
    subtotal: int = 0
    tax: int = 0
    discount_applied: int = 0
    grand_total: int = 0

    def to_payload(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "tax": self.tax,
            "discountApplied": self.discount_applied,
            "grandTotal": self.grand_total,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Totals":
        return cls(
            subtotal=int(payload.get("subtotal", 0)),
            tax=int(payload.get("tax", 0)),
            discount_applied=int(payload.get("discountApplied", payload.get("discount_applied", 0))),
            grand_total=int(payload.get("grandTotal", payload.get("grand_total", 0))),
        )


def clamp_discount(requested: int, subtotal: int) -> int:
    return min(max(int(requested), 0), subtotal)


def compute_totals(
    items: Mapping[str, int],
    catalog: MenuCatalog,
    discount: int = 0,
    tax_rate: Any = DEFAULT_TAX_RATE,
) -> Totals:
    """Price ``items`` against ``catalog``.

    Ids missing from the catalog contribute nothing. Tax is charged on the
    subtotal before the discount and rounded half-up to whole rupees.
    """
    subtotal = 0
    for item_id, quantity in items.items():
        entry = catalog.get_item(item_id)
        if entry is None:
            continue
        subtotal += entry.unit_price * int(quantity)

    tax = percent_of(subtotal, to_rate(tax_rate))
    discount_applied = clamp_discount(discount, subtotal)
    return Totals(
        subtotal=subtotal,
        tax=tax,
        discount_applied=discount_applied,
        grand_total=subtotal + tax - discount_applied,
    )
