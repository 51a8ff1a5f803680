"""
Tests for the pure consolidated statement builders.

Covers:
- Balance sheet sections, NCI and the A = L + E check
- Multi-step income statement and net income attribution
- Indirect cash flow reconciliation with and without a prior position
- Statement of changes in equity movements
- Dict rendering
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from consolidation_config import get_active_config
from consolidation_kernel.domain.accounts import AccountInfo, AccountType
from consolidation_kernel.exceptions import ConsolidatedBalanceSheetNotBalancedError
from consolidation_engines.aggregation import ConsolidatedTrialBalance, ConsolidatedTrialBalanceLine
from consolidation_modules.reporting.config import ReportingConfig
from consolidation_modules.reporting.models import ReportMetadata, ReportType
from consolidation_modules.reporting.statements import (
    build_balance_sheet,
    build_cash_flow_statement,
    build_equity_statement,
    build_income_statement,
    natural_amount,
    render_to_dict,
)
from tests.factories import account

AS_OF = date(2024, 3, 31)
TOLERANCE = Decimal("0.01")


def _row(info: AccountInfo, balance: str, nci: str = "0") -> ConsolidatedTrialBalanceLine:
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


def _tb(*rows, nci_income="0", as_of=AS_OF) -> ConsolidatedTrialBalance:
    return ConsolidatedTrialBalance(
        reporting_currency="USD",
        as_of_date=as_of,
        lines=tuple(sorted(rows, key=lambda r: r.account_number)),
        net_income_attributable_to_nci=Decimal(nci_income),
    )


def _metadata(report_type: ReportType) -> ReportMetadata:
    return ReportMetadata(
        report_type=report_type,
        group_id=uuid4(),
        group_name="Acme Holdings",
        run_id=uuid4(),
        currency="USD",
        as_of_date=AS_OF,
        generated_at="2024-04-02T09:00:00+00:00",
    )


def _eighty_percent_tb() -> ConsolidatedTrialBalance:
    """Parent plus an 80% EUR subsidiary: NI 1050, NCI 210, CTA -50."""
    cta = get_active_config().translation_adjustment_account.to_account_info()
    return _tb(
        _row(account("1000"), "6100"),
        _row(account("3000"), "-5000"),
        _row(cta, "-50", nci="-10"),
        _row(account("4000"), "-1050", nci="-210"),
        nci_income="210",
    )


class TestNaturalAmount:
    def test_debit_normal_unchanged(self):
        assert natural_amount(AccountType.ASSET, Decimal("10")) == Decimal("10")
        assert natural_amount(AccountType.EXPENSE, Decimal("10")) == Decimal("10")

    def test_credit_normal_negated(self):
        assert natural_amount(AccountType.REVENUE, Decimal("-10")) == Decimal("10")
        assert natural_amount(AccountType.EQUITY, Decimal("-10")) == Decimal("10")


# =============================================================================
# Balance sheet
# =============================================================================


class TestBalanceSheet:
    def setup_method(self):
        self.config = ReportingConfig()

    def test_sections_and_nci(self):
        sheet = build_balance_sheet(
            _eighty_percent_tb(), _metadata(ReportType.BALANCE_SHEET), self.config, TOLERANCE,
        )
        assert sheet.total_assets == Decimal("6100")
        assert sheet.total_liabilities == 0
        assert sheet.equity.total == Decimal("5050")
        assert sheet.current_net_income == Decimal("1050")
        assert sheet.total_equity == Decimal("6100")
        assert sheet.non_controlling_interest == Decimal("220")
        assert sheet.equity_attributable_to_parent == Decimal("5880")
        assert sheet.is_balanced

    def test_zero_balances_excluded_by_default(self):
        tb = _tb(_row(account("1000"), "100"), _row(account("1100"), "0"), _row(account("3000"), "-100"))
        sheet = build_balance_sheet(tb, _metadata(ReportType.BALANCE_SHEET), self.config, TOLERANCE)
        assert [l.account_number for l in sheet.current_assets.lines] == ["1000"]

        with_zero = build_balance_sheet(
            tb, _metadata(ReportType.BALANCE_SHEET), ReportingConfig(include_zero_balances=True),
            TOLERANCE,
        )
        assert [l.account_number for l in with_zero.current_assets.lines] == ["1000", "1100"]

    def test_unbalanced_raises(self):
        tb = _tb(_row(account("1000"), "100"), _row(account("3000"), "-90"))
        with pytest.raises(ConsolidatedBalanceSheetNotBalancedError):
            build_balance_sheet(tb, _metadata(ReportType.BALANCE_SHEET), self.config, TOLERANCE)


# =============================================================================
# Income statement
# =============================================================================


class TestIncomeStatement:
    def test_multi_step_subtotals(self):
        tb = _tb(
            _row(account("1000"), "320"),
            _row(account("4000"), "-1000"),
            _row(account("5000"), "400"),
            _row(account("6000"), "200"),
            _row(account("6100"), "50"),
            _row(account("4200"), "-100"),
            _row(account("6900"), "40"),
            _row(account("7000"), "90"),
        )
        statement = build_income_statement(
            tb, _metadata(ReportType.INCOME_STATEMENT), ReportingConfig(), TOLERANCE,
        )
        assert statement.revenue.total == Decimal("1000")
        assert statement.gross_profit == Decimal("600")
        assert statement.operating_expenses.total == Decimal("250")
        assert statement.operating_income == Decimal("350")
        assert statement.other_income_expense.total == Decimal("60")
        assert statement.income_before_tax == Decimal("410")
        assert statement.net_income == Decimal("320")
        assert statement.net_income_attributable_to_nci == 0
        assert statement.net_income_attributable_to_parent == Decimal("320")

    def test_nci_attribution(self):
        statement = build_income_statement(
            _eighty_percent_tb(), _metadata(ReportType.INCOME_STATEMENT), ReportingConfig(), TOLERANCE,
        )
        assert statement.net_income == Decimal("1050")
        assert statement.net_income_attributable_to_nci == Decimal("210")
        assert statement.net_income_attributable_to_parent == Decimal("840")


# =============================================================================
# Cash flow and equity
# =============================================================================


class TestCashFlowStatement:
    def test_first_period_opens_from_zero(self):
        statement = build_cash_flow_statement(
            _eighty_percent_tb(), None, _metadata(ReportType.CASH_FLOW), ReportingConfig(),
        )
        assert statement.net_income == Decimal("1050")
        assert statement.net_cash_from_financing == Decimal("5050")
        assert statement.beginning_cash == 0
        assert statement.ending_cash == Decimal("6100")
        assert statement.net_change_in_cash == Decimal("6100")
        assert statement.cash_change_reconciles

    def test_dividends_reduce_financing(self):
        prior = _tb(_row(account("1000"), "1000"), _row(account("3000"), "-1000"))
        current = _tb(
            _row(account("1000"), "1300"),
            _row(account("3000"), "-1000"),
            _row(account("3200"), "200"),
            _row(account("4000"), "-500"),
        )
        statement = build_cash_flow_statement(
            current, prior, _metadata(ReportType.CASH_FLOW), ReportingConfig(),
        )
        assert statement.net_cash_from_financing == Decimal("-200")
        assert statement.net_change_in_cash == Decimal("300")
        assert statement.cash_change_reconciles

    def test_depreciation_added_back(self):
        prior = _tb(_row(account("1000"), "100"), _row(account("1600"), "500"), _row(account("3000"), "-600"))
        current = _tb(
            _row(account("1000"), "100"),
            _row(account("1600"), "450"),
            _row(account("3000"), "-600"),
            _row(account("6100"), "50"),
        )
        statement = build_cash_flow_statement(
            current, prior, _metadata(ReportType.CASH_FLOW), ReportingConfig(),
        )
        assert statement.non_cash_adjustments.total == Decimal("50")
        assert statement.net_cash_from_operations == 0
        assert statement.net_change_in_cash == 0
        assert statement.cash_change_reconciles


class TestEquityStatement:
    def test_first_period_movements(self):
        statement = build_equity_statement(
            _eighty_percent_tb(), None, _metadata(ReportType.EQUITY_STATEMENT), ReportingConfig(),
        )
        movements = {m.description: m.amount for m in statement.movements}
        assert movements == {
            "Net Income": Decimal("1050"),
            "Other Comprehensive Income": Decimal("50"),
            "Capital Transactions": Decimal("5000"),
        }
        assert statement.ending_equity == Decimal("6100")
        assert statement.ending_nci == Decimal("220")
        assert statement.ending_equity_attributable_to_parent == Decimal("5880")
        assert statement.reconciles

    def test_dividends_declared(self):
        prior = _tb(_row(account("1000"), "1000"), _row(account("3000"), "-1000"))
        current = _tb(
            _row(account("1000"), "1300"),
            _row(account("3000"), "-1000"),
            _row(account("3200"), "200"),
            _row(account("4000"), "-500"),
        )
        statement = build_equity_statement(
            current, prior, _metadata(ReportType.EQUITY_STATEMENT), ReportingConfig(),
        )
        assert statement.beginning_equity == Decimal("1000")
        assert statement.dividends_declared == Decimal("200")
        assert statement.other_changes == 0
        assert statement.ending_equity == Decimal("1300")
        assert statement.reconciles


class TestRenderToDict:
    def test_decimals_and_ids_become_strings(self):
        metadata = _metadata(ReportType.BALANCE_SHEET)
        sheet = build_balance_sheet(_eighty_percent_tb(), metadata, ReportingConfig(), TOLERANCE)
        rendered = render_to_dict(sheet)
        assert rendered["total_assets"] == "6100"
        assert rendered["metadata"]["run_id"] == str(metadata.run_id)
        assert rendered["metadata"]["report_type"] == ReportType.BALANCE_SHEET.value
        assert rendered["metadata"]["as_of_date"] == "2024-03-31"
        assert isinstance(rendered["current_assets"]["lines"], list)
