"""
Tests for the currency translation engine.

Covers:
- Rate class per account type (closing / historical / average)
- Required rate keys and historical date fallback
- CTA line balancing the translated trial balance
- Identity translation
- Missing rate and missing historical date failures
- Intercompany transaction translation
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from consolidation_config import get_active_config
from consolidation_kernel.domain.rates import RateClass
from consolidation_kernel.exceptions import (
    ExchangeRateUnavailableError,
    HistoricalRateDateMissingError,
)
from consolidation_engines.translation import CurrencyTranslator
from consolidation_engines.types import LineSource, RateKey
from tests.factories import account_id, ic_transaction, line, member, trial_balance

AS_OF = date(2024, 3, 31)
ACQUIRED = date(2020, 1, 1)


def _key(rate_class, on_date=AS_OF):
    return RateKey("EUR", "USD", on_date, rate_class)


class TestRequiredRates:
    def setup_method(self):
        self.translator = CurrencyTranslator()
        self.company = uuid4()
        self.member = member(uuid4(), self.company, acquisition_date=ACQUIRED)

    def test_keys_by_account_type(self):
        tb = trial_balance(
            self.company, "EUR", AS_OF,
            line("1000", "1000"),
            line("2000", "-300"),
            line("3000", "-500"),
            line("4000", "-1000"),
            line("6000", "800"),
        )
        keys = self.translator.required_rates(tb, self.member, "USD", AS_OF)
        assert keys == (
            _key(RateClass.CLOSING),
            _key(RateClass.HISTORICAL, ACQUIRED),
            _key(RateClass.AVERAGE),
        )

    def test_line_historical_date_wins_over_acquisition_date(self):
        layer = date(2022, 6, 30)
        tb = trial_balance(
            self.company, "EUR", AS_OF,
            line("1000", "100"),
            line("3100", "-100", historical_date=layer),
        )
        keys = self.translator.required_rates(tb, self.member, "USD", AS_OF)
        assert _key(RateClass.HISTORICAL, layer) in keys
        assert _key(RateClass.HISTORICAL, ACQUIRED) not in keys

    def test_identity_needs_no_rates(self):
        tb = trial_balance(self.company, "USD", AS_OF, line("1000", "5"), line("3000", "-5"))
        assert self.translator.required_rates(tb, self.member, "USD", AS_OF) == ()

    def test_equity_without_any_date_fails(self):
        company = uuid4()
        tb = trial_balance(company, "EUR", AS_OF, line("1000", "5"), line("3000", "-5"))
        with pytest.raises(HistoricalRateDateMissingError) as exc_info:
            self.translator.required_rates(tb, member(uuid4(), company), "USD", AS_OF)
        assert exc_info.value.company_id == str(company)


class TestTranslate:
    def setup_method(self):
        self.translator = CurrencyTranslator()
        self.cta = get_active_config().translation_adjustment_account.to_account_info()
        self.company = uuid4()
        self.member = member(uuid4(), self.company, "80")

    def test_closing_and_average_with_cta(self):
        """Cash at closing 1.10, revenue at average 1.05; CTA balances to zero."""
        tb = trial_balance(
            self.company, "EUR", AS_OF, line("1000", "1000"), line("4000", "-1000"),
        )
        rates = {_key(RateClass.CLOSING): Decimal("1.10"), _key(RateClass.AVERAGE): Decimal("1.05")}

        result = self.translator.translate(tb, self.member, "USD", AS_OF, rates, self.cta)

        amounts = {l.account_id: l.amount for l in result.lines}
        assert amounts[account_id("1000")] == Decimal("1100.00")
        assert amounts[account_id("4000")] == Decimal("-1050.00")
        assert amounts[self.cta.account_id] == Decimal("-50.00")
        assert result.cta_amount == Decimal("-50.00")
        assert result.total == 0
        assert result.net_income == Decimal("1050.00")
        cta_line = next(l for l in result.lines if l.account_id == self.cta.account_id)
        assert cta_line.source == LineSource.TRANSLATION_ADJUSTMENT

    def test_lines_rounded_to_reporting_minor_unit(self):
        tb = trial_balance(
            self.company, "EUR", AS_OF, line("1000", "100.01"), line("2000", "-100.01"),
        )
        rates = {_key(RateClass.CLOSING): Decimal("1.23456")}
        result = self.translator.translate(tb, self.member, "USD", AS_OF, rates, self.cta)
        for l in result.lines:
            assert l.amount == l.amount.quantize(Decimal("0.01"))
        assert result.total == 0

    def test_no_cta_line_when_translation_balances(self):
        tb = trial_balance(
            self.company, "EUR", AS_OF, line("1000", "500"), line("2000", "-500"),
        )
        rates = {_key(RateClass.CLOSING): Decimal("1.10")}
        result = self.translator.translate(tb, self.member, "USD", AS_OF, rates, self.cta)
        assert all(l.source == LineSource.MEMBER for l in result.lines)
        assert result.cta_amount == 0

    def test_identity_translation(self):
        tb = trial_balance(
            self.company, "USD", AS_OF, line("1000", "250.00"), line("3000", "-250.00"),
        )
        result = self.translator.translate(tb, self.member, "USD", AS_OF, {}, self.cta)
        assert result.is_identity
        assert [l.amount for l in result.lines] == [Decimal("250.00"), Decimal("-250.00")]
        assert result.rates_applied == ()

    def test_identity_keeps_sub_cent_balances_without_cta(self):
        tb = trial_balance(
            self.company, "USD", AS_OF,
            line("1000", "0.005"), line("1100", "0.005"), line("3000", "-0.010"),
        )
        result = self.translator.translate(tb, self.member, "USD", AS_OF, {}, self.cta)
        assert result.cta_amount == 0
        assert [l.amount for l in result.lines] == [
            Decimal("0.005"), Decimal("0.005"), Decimal("-0.010"),
        ]
        assert sum(l.amount for l in result.lines) == 0

    def test_missing_rate_names_the_pair(self):
        tb = trial_balance(self.company, "EUR", AS_OF, line("1000", "1"), line("4000", "-1"))
        rates = {_key(RateClass.CLOSING): Decimal("1.10")}
        with pytest.raises(ExchangeRateUnavailableError) as exc_info:
            self.translator.translate(tb, self.member, "USD", AS_OF, rates, self.cta)
        error = exc_info.value
        assert (error.from_currency, error.to_currency) == ("EUR", "USD")
        assert error.rate_class == "average"
        assert error.company_id == str(self.company)

    def test_intercompany_partner_carried_through(self):
        partner = uuid4()
        tb = trial_balance(
            self.company, "USD", AS_OF,
            line("1150", "40", partner=partner), line("3000", "-40"),
        )
        result = self.translator.translate(tb, self.member, "USD", AS_OF, {}, self.cta)
        assert result.lines[0].intercompany_partner_id == partner


class TestTransactionTranslation:
    def setup_method(self):
        self.translator = CurrencyTranslator()

    def test_foreign_transaction_uses_average_rate(self):
        txn = ic_transaction(uuid4(), uuid4(), "200", currency="EUR")
        key = self.translator.transaction_rate_key(txn, "USD", AS_OF)
        assert key == _key(RateClass.AVERAGE)

        translated = self.translator.translate_transaction(
            txn, "USD", AS_OF, {key: Decimal("1.05")},
        )
        assert translated.amount == Decimal("210.00")
        assert translated.currency == "USD"
        assert translated.id == txn.id

    def test_reporting_currency_transaction_unchanged(self):
        txn = ic_transaction(uuid4(), uuid4(), "200", currency="USD")
        assert self.translator.transaction_rate_key(txn, "USD", AS_OF) is None
        assert self.translator.translate_transaction(txn, "USD", AS_OF, {}) is txn

    def test_missing_transaction_rate(self):
        txn = ic_transaction(uuid4(), uuid4(), "200", currency="GBP")
        with pytest.raises(ExchangeRateUnavailableError):
            self.translator.translate_transaction(txn, "USD", AS_OF, {})
