"""Tests for the Decimal money helpers and the currency registry."""

from decimal import Decimal

import pytest

from groupbuy_kernel.domain.currency import CurrencyRegistry
from groupbuy_kernel.domain.values import (
    jpy_to_cny,
    percentage,
    round_money,
    round_percent,
    to_decimal,
)


class TestToDecimal:

    def test_none_and_blank_are_zero(self):
        assert to_decimal(None) == Decimal("0")
        assert to_decimal("") == Decimal("0")

    def test_float_goes_through_str(self):
        assert to_decimal(0.1) == Decimal("0.1")

    def test_int_and_str(self):
        assert to_decimal(3) == Decimal("3")
        assert to_decimal("12.50") == Decimal("12.50")

    def test_rejects_bool(self):
        with pytest.raises(ValueError, match="bool"):
            to_decimal(True)

    def test_rejects_garbage(self):
        with pytest.raises(ValueError, match="exchange_rate"):
            to_decimal("abc", field="exchange_rate")

    def test_rejects_non_finite(self):
        with pytest.raises(ValueError, match="finite"):
            to_decimal("NaN")


class TestRounding:

    def test_cny_half_up(self):
        assert round_money(Decimal("1.005")) == Decimal("1.01")
        assert round_money(Decimal("1.004")) == Decimal("1.00")

    def test_jpy_has_no_minor_unit(self):
        assert round_money(Decimal("1499.5"), "JPY") == Decimal("1500")

    def test_unknown_currency(self):
        with pytest.raises(ValueError, match="Unsupported currency"):
            round_money(Decimal("1"), "USD")

    def test_round_percent(self):
        assert round_percent(Decimal("33.3333")) == Decimal("33.33")


class TestPercentage:

    def test_regular(self):
        assert percentage(Decimal("794"), Decimal("200")) == Decimal("397")

    def test_zero_denominator_is_zero(self):
        assert percentage(Decimal("50"), Decimal("0")) == Decimal("0")


class TestConversion:

    def test_jpy_to_cny(self):
        assert jpy_to_cny(Decimal("3000"), Decimal("0.05")) == Decimal("150.00")

    def test_registry(self):
        assert CurrencyRegistry.get_decimal_places("cny") == 2
        assert CurrencyRegistry.get_decimal_places("JPY") == 0
        assert CurrencyRegistry.all_codes() == frozenset({"JPY", "CNY"})
        assert not CurrencyRegistry.is_valid("")
