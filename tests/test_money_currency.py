"""Tests for rupee rounding and display."""

from decimal import Decimal

import pytest

from ruralbites_pos.core.money import percent_of, round_half_up, to_rate
from ruralbites_pos.utils.currency import format_rupees


@pytest.mark.parametrize(
    "value, expected",
    [(Decimal("0.5"), 1), (Decimal("1.49"), 1), (Decimal("2.5"), 3), ("36", 36), (Decimal("-0.5"), -1)],
)
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected


def test_percent_of():
    assert percent_of(720, "0.05") == 36
    assert percent_of(10, Decimal("0.05")) == 1
    assert percent_of(0, "0.05") == 0


@pytest.mark.parametrize("bad", ["abc", "-0.1", "NaN", None])
def test_to_rate_rejects_bad_values(bad):
    with pytest.raises(ValueError):
        to_rate(bad)


def test_to_rate_accepts_numbers():
    assert to_rate(0.18) == Decimal("0.18")
    assert to_rate("0.05") == Decimal("0.05")


@pytest.mark.parametrize(
    "amount, expected",
    [(0, "₹0"), (756, "₹756"), (1234, "₹1,234"), (-60, "-₹60"), (None, "₹0"), ("12.5", "₹13")],
)
def test_format_rupees(amount, expected):
    assert format_rupees(amount) == expected


def test_format_other_currency():
    assert format_rupees(1500, "usd") == "usd 1,500"
