"""
Pure consolidated statement transformation functions.

These functions turn a consolidated trial balance into structured
financial statements. ZERO I/O. ZERO side effects.

All monetary values are Decimal. All inputs/outputs are frozen dataclasses.

Functions in this module follow the domain purity convention:
- No database access
- No clock access (the generation timestamp arrives in ``metadata``)
- Deterministic: same inputs always produce same outputs

Identity checks raise rather than flag: a consolidated statement that does
not balance is never returned.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from consolidation_kernel.domain.accounts import AccountCategory, AccountType
from consolidation_kernel.exceptions import (
    ConsolidatedBalanceSheetNotBalancedError,
    ConsolidatedIncomeStatementNotBalancedError,
)
from consolidation_engines.aggregation import (
    ConsolidatedTrialBalance,
    ConsolidatedTrialBalanceLine,
)
from consolidation_modules.reporting.config import ReportingConfig
from consolidation_modules.reporting.models import (
    CashFlowLineItem,
    CashFlowSection,
    ConsolidatedBalanceSheet,
    ConsolidatedCashFlowStatement,
    ConsolidatedEquityStatement,
    ConsolidatedIncomeStatement,
    EquityMovement,
    ReportMetadata,
    StatementLine,
    StatementSection,
)

ZERO = Decimal("0")

C = AccountCategory

CURRENT_ASSET_CATEGORIES = frozenset({C.CASH, C.CURRENT_ASSET})
NON_CURRENT_ASSET_CATEGORIES = frozenset({
    C.NON_CURRENT_ASSET, C.FIXED_ASSET, C.INTANGIBLE_ASSET, C.EQUITY_METHOD_INVESTMENT,
})
CURRENT_LIABILITY_CATEGORIES = frozenset({C.CURRENT_LIABILITY})
NON_CURRENT_LIABILITY_CATEGORIES = frozenset({C.NON_CURRENT_LIABILITY})
EQUITY_CATEGORIES = frozenset({
    C.CONTRIBUTED_CAPITAL, C.RETAINED_EARNINGS, C.OTHER_COMPREHENSIVE_INCOME, C.TREASURY_STOCK,
})
REVENUE_CATEGORIES = frozenset({C.OPERATING_REVENUE})
COST_OF_SALES_CATEGORIES = frozenset({C.COST_OF_SALES})
OPERATING_EXPENSE_CATEGORIES = frozenset({C.OPERATING_EXPENSE, C.DEPRECIATION_AMORTIZATION})
OTHER_INCOME_EXPENSE_CATEGORIES = frozenset({C.OTHER_REVENUE, C.OTHER_EXPENSE})
TAX_CATEGORIES = frozenset({C.TAX_EXPENSE})
CAPITAL_CATEGORIES = frozenset({C.CONTRIBUTED_CAPITAL, C.TREASURY_STOCK})


# =========================================================================
# Helpers
# =========================================================================


def natural_amount(account_type: AccountType, signed: Decimal) -> Decimal:
    """
    Present a debit-positive balance in its natural sign.

    Debit-normal (ASSET, EXPENSE): unchanged.
    Credit-normal (LIABILITY, EQUITY, REVENUE): negated.
    """
    if account_type in (AccountType.ASSET, AccountType.EXPENSE):
        return signed
    return -signed


def _statement_line(line: ConsolidatedTrialBalanceLine) -> StatementLine:
    return StatementLine(
        account_id=line.account_id,
        account_number=line.account_number,
        account_name=line.account_name,
        category=line.category.value,
        amount=natural_amount(line.account_type, line.consolidated_balance),
        nci_amount=natural_amount(line.account_type, line.nci_portion),
    )


def _section(
    label: str,
    tb: ConsolidatedTrialBalance,
    categories: frozenset[AccountCategory],
    config: ReportingConfig,
) -> StatementSection:
    lines = tuple(
        _statement_line(line)
        for line in tb.lines
        if line.category in categories
        and (config.include_zero_balances or line.consolidated_balance != 0)
    )
    return StatementSection(
        label=label,
        lines=lines,
        total=sum((l.amount for l in lines), ZERO),
    )


def _signed_by_account(tb: ConsolidatedTrialBalance | None) -> dict[UUID, ConsolidatedTrialBalanceLine]:
    if tb is None:
        return {}
    return {line.account_id: line for line in tb.lines}


def _signed_total(
    tb: ConsolidatedTrialBalance | None,
    categories: Iterable[AccountCategory],
) -> Decimal:
    if tb is None:
        return ZERO
    wanted = frozenset(categories)
    return sum((l.consolidated_balance for l in tb.lines if l.category in wanted), ZERO)


def _net_income(tb: ConsolidatedTrialBalance | None) -> Decimal:
    return tb.consolidated_net_income if tb is not None else ZERO


def _total_equity(tb: ConsolidatedTrialBalance | None) -> Decimal:
    """Equity accounts plus current net income, natural sign."""
    if tb is None:
        return ZERO
    return -tb.balance_for(AccountType.EQUITY) + tb.consolidated_net_income


# =========================================================================
# 1. BALANCE SHEET
# =========================================================================


def build_balance_sheet(
    tb: ConsolidatedTrialBalance,
    metadata: ReportMetadata,
    config: ReportingConfig,
    tolerance: Decimal,
) -> ConsolidatedBalanceSheet:
    """
    Build a classified consolidated balance sheet.

    1. Section asset, liability and equity accounts by category
    2. Add current net income to equity
    3. Split total equity into parent and non-controlling interest
    4. Verify A = L + E within ``tolerance``
    """
    current_assets = _section("Current Assets", tb, CURRENT_ASSET_CATEGORIES, config)
    non_current_assets = _section("Non-Current Assets", tb, NON_CURRENT_ASSET_CATEGORIES, config)
    total_assets = current_assets.total + non_current_assets.total

    current_liabilities = _section("Current Liabilities", tb, CURRENT_LIABILITY_CATEGORIES, config)
    non_current_liabilities = _section(
        "Non-Current Liabilities", tb, NON_CURRENT_LIABILITY_CATEGORIES, config,
    )
    total_liabilities = current_liabilities.total + non_current_liabilities.total

    equity = _section("Equity", tb, EQUITY_CATEGORIES, config)
    net_income = tb.consolidated_net_income
    total_equity = equity.total + net_income
    nci = tb.total_nci

    total_l_and_e = total_liabilities + total_equity
    if abs(total_assets - total_l_and_e) > tolerance:
        raise ConsolidatedBalanceSheetNotBalancedError(
            total_assets, total_liabilities, total_equity,
        )

    return ConsolidatedBalanceSheet(
        metadata=metadata,
        current_assets=current_assets,
        non_current_assets=non_current_assets,
        total_assets=total_assets,
        current_liabilities=current_liabilities,
        non_current_liabilities=non_current_liabilities,
        total_liabilities=total_liabilities,
        equity=equity,
        current_net_income=net_income,
        equity_attributable_to_parent=total_equity - nci,
        non_controlling_interest=nci,
        total_equity=total_equity,
        total_liabilities_and_equity=total_l_and_e,
        is_balanced=True,
    )


# =========================================================================
# 2. INCOME STATEMENT
# =========================================================================


def build_income_statement(
    tb: ConsolidatedTrialBalance,
    metadata: ReportMetadata,
    config: ReportingConfig,
    tolerance: Decimal,
) -> ConsolidatedIncomeStatement:
    """
    Build the multi-step consolidated income statement.

        Revenue
        - Cost of Sales
        = Gross Profit
        - Operating Expenses
        = Operating Income
        + Other Income / Expense (net)
        = Income Before Tax
        - Tax Expense
        = Net Income
    """
    revenue = _section("Revenue", tb, REVENUE_CATEGORIES, config)
    cost_of_sales = _section("Cost of Sales", tb, COST_OF_SALES_CATEGORIES, config)
    operating_expenses = _section("Operating Expenses", tb, OPERATING_EXPENSE_CATEGORIES, config)
    tax_expense = _section("Tax Expense", tb, TAX_CATEGORIES, config)

    other = _section("Other Income and Expense", tb, OTHER_INCOME_EXPENSE_CATEGORIES, config)
    # Other expense lines present as positive expenses; the section nets to income.
    other_net = sum(
        (l.amount if AccountCategory(l.category).account_type == AccountType.REVENUE else -l.amount
         for l in other.lines),
        ZERO,
    )
    other_income_expense = dataclasses.replace(other, total=other_net)

    gross_profit = revenue.total - cost_of_sales.total
    operating_income = gross_profit - operating_expenses.total
    income_before_tax = operating_income + other_income_expense.total
    computed_net_income = income_before_tax - tax_expense.total

    net_income = tb.consolidated_net_income
    if abs(net_income - computed_net_income) > tolerance:
        raise ConsolidatedIncomeStatementNotBalancedError(net_income, computed_net_income)

    return ConsolidatedIncomeStatement(
        metadata=metadata,
        revenue=revenue,
        cost_of_sales=cost_of_sales,
        gross_profit=gross_profit,
        operating_expenses=operating_expenses,
        operating_income=operating_income,
        other_income_expense=other_income_expense,
        income_before_tax=income_before_tax,
        tax_expense=tax_expense,
        net_income=net_income,
        net_income_attributable_to_parent=tb.net_income_attributable_to_parent,
        net_income_attributable_to_nci=tb.net_income_attributable_to_nci,
    )


# =========================================================================
# 3. CASH FLOW STATEMENT (Indirect Method)
# =========================================================================


def build_cash_flow_statement(
    current: ConsolidatedTrialBalance,
    prior: ConsolidatedTrialBalance | None,
    metadata: ReportMetadata,
    config: ReportingConfig,
) -> ConsolidatedCashFlowStatement:
    """
    Build the consolidated statement of cash flows (indirect method).

    ``prior`` is the consolidated trial balance of the opening position;
    None means every opening balance is zero.

    Steps:
    1. Net income from the current trial balance
    2. Add back non-cash expenses (depreciation, amortization)
    3. Working capital: changes in non-cash current assets and current liabilities
    4. Investing: changes in non-current assets, gross of the non-cash charges
    5. Financing: changes in non-current liabilities and equity; prior-period
       net income is part of opening equity
    """
    net_income = current.consolidated_net_income
    current_bal = _signed_by_account(current)
    prior_bal = _signed_by_account(prior)
    accounts = {**prior_bal, **current_bal}

    def _change(account_id: UUID) -> Decimal:
        cur = current_bal.get(account_id)
        pri = prior_bal.get(account_id)
        return (
            (cur.consolidated_balance if cur is not None else ZERO)
            - (pri.consolidated_balance if pri is not None else ZERO)
        )

    ordered = sorted(accounts.values(), key=lambda l: (l.account_number, str(l.account_id)))

    # --- Non-cash adjustments ---
    non_cash_lines = [
        CashFlowLineItem(description=f"Add back: {line.account_name}", amount=line.consolidated_balance)
        for line in current.lines
        if line.category in config.non_cash_categories and line.consolidated_balance != 0
    ]
    non_cash_total = sum((l.amount for l in non_cash_lines), ZERO)

    # --- Working capital, investing, financing ---
    wc_lines: list[CashFlowLineItem] = []
    inv_lines: list[CashFlowLineItem] = []
    fin_lines: list[CashFlowLineItem] = []
    for line in ordered:
        change = _change(line.account_id)
        if change == 0 or line.category == AccountCategory.CASH:
            continue
        item = CashFlowLineItem(description=f"Change in {line.account_name}", amount=-change)
        if line.category in CURRENT_ASSET_CATEGORIES or line.category in CURRENT_LIABILITY_CATEGORIES:
            wc_lines.append(item)
        elif line.category in NON_CURRENT_ASSET_CATEGORIES:
            inv_lines.append(item)
        elif line.category in NON_CURRENT_LIABILITY_CATEGORIES or line.category in EQUITY_CATEGORIES:
            fin_lines.append(item)

    if non_cash_total != 0:
        inv_lines.append(
            CashFlowLineItem(description="Less: non-cash charges to non-current assets", amount=-non_cash_total)
        )
    prior_net_income = _net_income(prior)
    if prior_net_income != 0:
        fin_lines.append(
            CashFlowLineItem(description="Prior period net income in opening equity", amount=-prior_net_income)
        )

    wc_total = sum((l.amount for l in wc_lines), ZERO)
    inv_total = sum((l.amount for l in inv_lines), ZERO)
    fin_total = sum((l.amount for l in fin_lines), ZERO)

    net_cash_from_operations = net_income + non_cash_total + wc_total
    net_change = net_cash_from_operations + inv_total + fin_total
    beginning_cash = _signed_total(prior, (AccountCategory.CASH,))
    ending_cash = _signed_total(current, (AccountCategory.CASH,))

    return ConsolidatedCashFlowStatement(
        metadata=metadata,
        net_income=net_income,
        non_cash_adjustments=CashFlowSection("Non-Cash Adjustments", tuple(non_cash_lines), non_cash_total),
        working_capital_changes=CashFlowSection("Changes in Working Capital", tuple(wc_lines), wc_total),
        net_cash_from_operations=net_cash_from_operations,
        investing_activities=CashFlowSection("Investing Activities", tuple(inv_lines), inv_total),
        net_cash_from_investing=inv_total,
        financing_activities=CashFlowSection("Financing Activities", tuple(fin_lines), fin_total),
        net_cash_from_financing=fin_total,
        net_change_in_cash=net_change,
        beginning_cash=beginning_cash,
        ending_cash=ending_cash,
        cash_change_reconciles=(ending_cash - beginning_cash == net_change),
    )


# =========================================================================
# 4. STATEMENT OF CHANGES IN EQUITY
# =========================================================================


def build_equity_statement(
    current: ConsolidatedTrialBalance,
    prior: ConsolidatedTrialBalance | None,
    metadata: ReportMetadata,
    config: ReportingConfig,
) -> ConsolidatedEquityStatement:
    """
    Build the consolidated statement of changes in equity.

    Beginning equity (prior equity accounts + prior net income)
    + Net income
    - Dividends declared
    + Other comprehensive income (including translation adjustment)
    + Capital contributed / repurchased
    +/- Other changes
    = Ending equity (current equity accounts + current net income)
    """
    current_bal = _signed_by_account(current)
    prior_bal = _signed_by_account(prior)
    accounts = {**prior_bal, **current_bal}

    def _equity_change(predicate) -> Decimal:
        """Natural-sign change over equity accounts matching ``predicate``."""
        total = ZERO
        for account_id, line in accounts.items():
            if line.account_type != AccountType.EQUITY or not predicate(line):
                continue
            cur = current_bal.get(account_id)
            pri = prior_bal.get(account_id)
            total -= (
                (cur.consolidated_balance if cur is not None else ZERO)
                - (pri.consolidated_balance if pri is not None else ZERO)
            )
        return total

    beginning_equity = _total_equity(prior)
    ending_equity = _total_equity(current)
    net_income = current.consolidated_net_income

    is_dividend = lambda l: config.is_dividend_account(l.account_name)  # noqa: E731
    dividends = -_equity_change(is_dividend)
    oci = _equity_change(
        lambda l: l.category == AccountCategory.OTHER_COMPREHENSIVE_INCOME and not is_dividend(l)
    )
    capital = _equity_change(lambda l: l.category in CAPITAL_CATEGORIES and not is_dividend(l))
    other_changes = ending_equity - beginning_equity - net_income + dividends - oci - capital

    movements = [EquityMovement(description="Net Income", amount=net_income)]
    if dividends != 0:
        movements.append(EquityMovement(description="Dividends Declared", amount=-dividends))
    if oci != 0:
        movements.append(EquityMovement(description="Other Comprehensive Income", amount=oci))
    if capital != 0:
        movements.append(EquityMovement(description="Capital Transactions", amount=capital))
    if other_changes != 0:
        movements.append(EquityMovement(description="Other Changes", amount=other_changes))

    total_movements = sum((m.amount for m in movements), ZERO)
    ending_nci = current.total_nci

    return ConsolidatedEquityStatement(
        metadata=metadata,
        beginning_equity=beginning_equity,
        beginning_nci=prior.total_nci if prior is not None else ZERO,
        movements=tuple(movements),
        ending_equity=ending_equity,
        ending_nci=ending_nci,
        ending_equity_attributable_to_parent=ending_equity - ending_nci,
        net_income=net_income,
        net_income_attributable_to_parent=current.net_income_attributable_to_parent,
        net_income_attributable_to_nci=current.net_income_attributable_to_nci,
        dividends_declared=dividends,
        other_comprehensive_income=oci,
        capital_changes=capital,
        other_changes=other_changes,
        reconciles=(beginning_equity + total_movements == ending_equity),
    )


# =========================================================================
# 5. RENDERER (dict/JSON output)
# =========================================================================


def render_to_dict(obj: object) -> dict | list | str | int | float | bool | None:
    """
    Convert any report dataclass to a plain dict for JSON serialization.

    Decimal -> str (preserving precision), UUID -> str, date -> ISO string,
    Enum -> value, nested dataclasses -> dicts, tuples -> lists.
    """
    if obj is None:
        return None
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (list, tuple)):
        return [render_to_dict(item) for item in obj]
    if isinstance(obj, dict):
        return {str(k): render_to_dict(v) for k, v in obj.items()}
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {
            f.name: render_to_dict(getattr(obj, f.name))
            for f in dataclasses.fields(obj)
        }
    if isinstance(obj, (str, int, float, bool)):
        return obj
    return str(obj)
