"""
Tests for monetary value objects and the currency registry.

Covers:
- Currency code validation and minor units
- Money arithmetic and currency mismatch
- ROUND_HALF_UP rounding at the currency's precision
- ExchangeRate conversion
"""

from decimal import Decimal

import pytest

from consolidation_kernel.domain.currency import CurrencyRegistry
from consolidation_kernel.domain.values import Currency, ExchangeRate, Money
from consolidation_kernel.exceptions import CurrencyMismatchError, InvalidCurrencyError


class TestCurrency:
    def test_code_is_normalized(self):
        assert Currency(" usd ").code == "USD"

    def test_unknown_code_rejected(self):
        with pytest.raises(InvalidCurrencyError) as exc_info:
            Currency("XYZ")
        assert exc_info.value.code == "INVALID_CURRENCY"

    @pytest.mark.parametrize(
        "code, minor_unit",
        [("USD", Decimal("0.01")), ("JPY", Decimal("1")), ("KWD", Decimal("0.001"))],
    )
    def test_minor_unit(self, code, minor_unit):
        assert Currency(code).minor_unit == minor_unit


class TestCurrencyRegistry:
    def test_quantize_rounds_half_up(self):
        assert CurrencyRegistry.quantize(Decimal("10.005"), "USD") == Decimal("10.01")
        assert CurrencyRegistry.quantize(Decimal("-10.005"), "USD") == Decimal("-10.01")

    def test_quantize_zero_decimal_currency(self):
        assert CurrencyRegistry.quantize(Decimal("1234.5"), "JPY") == Decimal("1235")

    def test_unknown_code_has_no_decimal_places(self):
        with pytest.raises(ValueError):
            CurrencyRegistry.get_decimal_places("ZZZ")


class TestMoney:
    def test_addition_same_currency(self):
        total = Money.of("10.50", "USD") + Money.of("4.50", "USD")
        assert total == Money.of("15.00", "USD")

    def test_addition_mixed_currency_rejected(self):
        with pytest.raises(CurrencyMismatchError):
            Money.of("1", "USD") + Money.of("1", "EUR")

    def test_float_amount_rejected(self):
        with pytest.raises(TypeError):
            Money.of(1.5, "USD")

    def test_round_is_explicit(self):
        money = Money.of("1.005", "USD")
        assert money.amount == Decimal("1.005")
        assert money.round().amount == Decimal("1.01")

    def test_negation_and_abs(self):
        money = Money.of("-3.25", "EUR")
        assert (-money).amount == Decimal("3.25")
        assert abs(money).amount == Decimal("3.25")
        assert money.is_negative

    def test_sign_predicates(self):
        assert Money.zero("USD").is_zero
        assert Money.of("0.01", "USD").is_positive
        assert not Money.of("-0.01", "USD").is_positive


class TestExchangeRate:
    def test_convert(self):
        rate = ExchangeRate("EUR", "USD", Decimal("1.10"))
        converted = rate.convert(Money.of("1000", "EUR"))
        assert converted.currency.code == "USD"
        assert converted.amount == Decimal("1100.00")

    def test_convert_wrong_currency_rejected(self):
        rate = ExchangeRate("EUR", "USD", Decimal("1.10"))
        with pytest.raises(CurrencyMismatchError):
            rate.convert(Money.of("1", "GBP"))

    def test_non_positive_rate_rejected(self):
        with pytest.raises(ValueError):
            ExchangeRate("EUR", "USD", Decimal("0"))

    def test_identity(self):
        rate = ExchangeRate.identity("USD")
        assert rate.is_identity
        assert rate.rate == Decimal("1")
