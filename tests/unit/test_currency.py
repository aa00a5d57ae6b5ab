"""
Unit Tests - Currency Normalization
"""
from decimal import Decimal

import pytest

from order_analytics.analytics.currency import CurrencyConverter, round_money, to_cents
from order_analytics.config import AnalyticsSettings


@pytest.fixture
def czk() -> CurrencyConverter:
    return CurrencyConverter("czk", {"eur": "25", "USD": Decimal("23.1"), "GBP": 0})


class TestCurrencyConverter:
    """Tests for CurrencyConverter"""

    def test_base_currency_is_upper_cased(self, czk):
        """Test base currency normalization"""
        assert czk.base_currency == "CZK"
        assert czk.rate("CZK") == Decimal("1")

    def test_base_currency_is_identity(self, czk):
        """Test conversion in the base currency returns the amount unchanged"""
        assert czk.convert_to_base(Decimal("123.456"), "CZK") == Decimal("123.456")
        assert czk.convert_to_base(Decimal("10"), " czk ") == Decimal("10")

    def test_missing_currency_counts_as_base(self, czk):
        """Test a missing currency code is treated as base"""
        assert czk.convert_to_base(Decimal("42"), None) == Decimal("42")
        assert czk.convert_to_base(Decimal("42"), "") == Decimal("42")

    def test_eur_to_czk(self, czk):
        """Test 100 EUR at 25 becomes 2500 CZK"""
        assert czk.convert_to_base(Decimal("100"), "EUR") == Decimal("2500.00")

    def test_currency_codes_are_case_insensitive(self, czk):
        """Test rates are matched case-insensitively"""
        assert czk.convert_to_base("2", "eur") == Decimal("50.00")

    def test_conversion_rounds_to_cents(self, czk):
        """Test converted amounts are rounded half up to 2 places"""
        assert czk.convert_to_base(Decimal("1.005"), "USD") == Decimal("23.22")

    def test_unknown_currency_returns_none(self, czk):
        """Test unknown currencies do not raise"""
        assert czk.convert_to_base(Decimal("10"), "PLN") is None

    def test_non_positive_rate_returns_none(self, czk):
        """Test a zero rate is treated as unknown"""
        assert czk.convert_to_base(Decimal("10"), "GBP") is None

    def test_none_amount(self, czk):
        """Test a missing amount stays missing"""
        assert czk.convert_to_base(None, "EUR") is None

    def test_cross_conversion(self, czk):
        """Test conversion between two non-base currencies"""
        assert czk.convert(Decimal("100"), "EUR", "CZK") == Decimal("2500.00")
        assert czk.convert(Decimal("2500"), "CZK", "EUR") == Decimal("100.00")
        assert czk.convert(Decimal("10"), "EUR", "EUR") == Decimal("10.00")
        assert czk.convert(Decimal("10"), "EUR", "PLN") is None

    def test_base_amount_keeps_precomputed_sum(self, czk):
        """Test precomputed base sums are never converted again"""
        assert czk.base_amount(Decimal("500"), None, "EUR") == Decimal("500")
        assert czk.base_amount(Decimal("500"), Decimal("10"), "EUR") == Decimal("750.00")

    def test_base_amount_unconvertible_remainder_adds_zero(self, czk):
        """Test a remainder in an unknown currency contributes nothing"""
        assert czk.base_amount(Decimal("500"), Decimal("10"), "PLN") == Decimal("500")
        assert czk.base_amount(None, None, "EUR") == Decimal("0")

    def test_from_settings(self):
        """Test building a converter from configuration"""
        settings = AnalyticsSettings(base_currency="eur", currency_rates={"CZK": Decimal("0.04")})
        converter = CurrencyConverter.from_settings(settings)

        assert converter.base_currency == "EUR"
        assert converter.convert_to_base(Decimal("2500"), "CZK") == Decimal("100.00")


class TestMoneyHelpers:
    """Tests for rounding helpers"""

    def test_round_money(self):
        """Test rounding half up and None handling"""
        assert round_money("2.345") == Decimal("2.35")
        assert round_money(None) == Decimal("0.00")

    def test_to_cents(self):
        """Test integer cents"""
        assert to_cents(Decimal("12.34")) == 1234
        assert to_cents(None) == 0
