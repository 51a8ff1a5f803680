"""
Tests for consolidated trial balance validation.
"""

from datetime import date
from decimal import Decimal

from consolidation_engines.aggregation import ConsolidatedTrialBalance, ConsolidatedTrialBalanceLine
from consolidation_engines.types import IssueSeverity
from consolidation_engines.validation import ConsolidationValidator, balance_sheet_totals
from tests.factories import account

AS_OF = date(2024, 3, 31)


def _row(number, balance, nci="0"):
    info = account(number)
    amount = Decimal(balance)
    return ConsolidatedTrialBalanceLine(
        account_id=info.account_id,
        account_number=info.account_number,
        account_name=info.name,
        category=info.category,
        aggregated_balance=amount,
        elimination_amount=Decimal("0"),
        consolidated_balance=amount,
        nci_portion=Decimal(nci),
    )


def _tb(*rows, nci_income="0"):
    return ConsolidatedTrialBalance(
        reporting_currency="USD",
        as_of_date=AS_OF,
        lines=tuple(rows),
        net_income_attributable_to_nci=Decimal(nci_income),
    )


class TestConsolidationValidator:
    def setup_method(self):
        self.validator = ConsolidationValidator()

    def test_balanced_tb_has_no_issues(self):
        tb = _tb(_row("1000", "6100"), _row("3000", "-5050"), _row("4000", "-1050"))
        assert self.validator.validate(tb, (), Decimal("0.01")) == ()

    def test_unbalanced_tb_reported(self):
        tb = _tb(_row("1000", "100"), _row("3000", "-90"))
        issues = self.validator.validate(tb, (), Decimal("0.01"))
        codes = [issue.code for issue in issues]
        assert "CONSOLIDATED_TRIAL_BALANCE_NOT_BALANCED" in codes
        assert "CONSOLIDATED_BALANCE_SHEET_NOT_BALANCED" in codes
        assert all(issue.severity == IssueSeverity.ERROR for issue in issues)

    def test_difference_within_tolerance_passes(self):
        tb = _tb(_row("1000", "100.01"), _row("3000", "-100.00"))
        assert self.validator.validate(tb, (), Decimal("0.01")) == ()

    def test_issue_details_carry_totals(self):
        tb = _tb(_row("1000", "100"), _row("3000", "-90"))
        issue = self.validator.validate(tb, (), Decimal("0"))[0]
        assert issue.details == {"total_debits": "100", "total_credits": "90"}


class TestBalanceSheetTotals:
    def test_equity_includes_current_net_income(self):
        tb = _tb(
            _row("1000", "6100"),
            _row("2000", "-100"),
            _row("3000", "-4950"),
            _row("4000", "-1050"),
        )
        assets, liabilities, equity = balance_sheet_totals(tb)
        assert assets == Decimal("6100")
        assert liabilities == Decimal("100")
        assert equity == Decimal("6000")
