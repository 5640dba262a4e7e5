"""Tests for bill arithmetic."""

from decimal import Decimal

import pytest

from ruralbites_pos.services.totals import Totals, clamp_discount, compute_totals


def test_two_butter_chicken(menu):
    totals = compute_totals({"butter-chicken": 2}, menu)
    assert totals == Totals(subtotal=720, tax=36, discount_applied=0, grand_total=756)


def test_empty_items_are_all_zero(menu):
    assert compute_totals({}, menu) == Totals(0, 0, 0, 0)


def test_unknown_items_contribute_nothing(menu):
    totals = compute_totals({"butter-chicken": 1, "retired-dish": 4}, menu)
    assert totals.subtotal == 360


def test_tax_rounds_half_up(menu):
    """5% of 10 is 0.5, which rounds up to 1."""
    totals = compute_totals({"gulab-jamun": 2}, menu)
    assert totals.subtotal == 10
    assert totals.tax == 1
    assert totals.grand_total == 11


def test_tax_rounds_down_below_half(menu):
    totals = compute_totals({"gulab-jamun": 1}, menu)  # 0.25
    assert totals.tax == 0


def test_tax_is_charged_before_discount(menu):
    totals = compute_totals({"butter-chicken": 2}, menu, discount=100)
    assert totals.tax == 36
    assert totals.discount_applied == 100
    assert totals.grand_total == 656


def test_discount_above_subtotal_is_clamped(menu):
    totals = compute_totals({"garlic-naan": 1}, menu, discount=500)
    assert totals.discount_applied == 60
    assert totals.grand_total == 3  # tax stays payable


def test_negative_discount_is_ignored(menu):
    totals = compute_totals({"garlic-naan": 1}, menu, discount=-20)
    assert totals.discount_applied == 0


def test_custom_tax_rate(menu):
    totals = compute_totals({"butter-chicken": 1}, menu, tax_rate=Decimal("0.18"))
    assert totals.tax == 65  # 64.8


@pytest.mark.parametrize(
    "requested, subtotal, expected",
    [(0, 100, 0), (50, 100, 50), (150, 100, 100), (-5, 100, 0), (10, 0, 0)],
)
def test_clamp_discount(requested, subtotal, expected):
    assert clamp_discount(requested, subtotal) == expected


def test_totals_payload_uses_camel_case():
    payload = Totals(720, 36, 20, 736).to_payload()
    assert payload == {"subtotal": 720, "tax": 36, "discountApplied": 20, "grandTotal": 736}
    assert Totals.from_payload(payload) == Totals(720, 36, 20, 736)


def test_totals_from_snake_case_payload():
    totals = Totals.from_payload({"subtotal": 100, "tax": 5, "discount_applied": 0, "grand_total": 105})
    assert totals.grand_total == 105


def test_same_inputs_same_totals(menu):
    items = {"butter-chicken": 1, "garlic-naan": 3}
    assert compute_totals(items, menu, 40) == compute_totals(items, menu, 40)
