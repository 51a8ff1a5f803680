"""
Consolidated Reporting Domain Models (``consolidation_modules.reporting.models``).

Responsibility
--------------
Frozen dataclass value objects for the consolidated statements: balance
sheet, income statement, cash flow statement (indirect method) and
statement of changes in equity.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Built by
``consolidation_modules.reporting.statements`` and returned by
``ConsolidatedReportService``.  Reports are derived views and are never
persisted.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* Statement amounts are presented in natural sign: assets and expenses
  positive when debit, liabilities, equity and revenue positive when
  credit.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class ReportType(str, Enum):
    """Types of consolidated reports."""

    BALANCE_SHEET = "balance_sheet"
    INCOME_STATEMENT = "income_statement"
    CASH_FLOW = "cash_flow"
    EQUITY_STATEMENT = "equity_statement"


# =========================================================================
# Report Metadata (common to all reports)
# =========================================================================


@dataclass(frozen=True)
class ReportMetadata:
    """Metadata attached to every consolidated report."""

    report_type: ReportType
    group_id: UUID
    group_name: str
    run_id: UUID
    currency: str
    as_of_date: date
    generated_at: str  # ISO format timestamp from injected clock
    comparative_run_id: UUID | None = None
    comparative_date: date | None = None


# =========================================================================
# Sections
# =========================================================================


@dataclass(frozen=True)
class StatementLine:
    """One account on a statement, with its non-controlling share."""

    account_id: UUID
    account_number: str
    account_name: str
    category: str
    amount: Decimal
    nci_amount: Decimal = Decimal("0")


@dataclass(frozen=True)
class StatementSection:
    label: str
    lines: tuple[StatementLine, ...]
    total: Decimal


# =========================================================================
# Balance Sheet
# =========================================================================


@dataclass(frozen=True)
class ConsolidatedBalanceSheet:
    """
    Classified consolidated balance sheet.

    total_assets == total_liabilities + total_equity within tolerance;
    total_equity includes current net income and splits into the parent's
    share and non-controlling interest.
    """

    metadata: ReportMetadata

    current_assets: StatementSection
    non_current_assets: StatementSection
    total_assets: Decimal

    current_liabilities: StatementSection
    non_current_liabilities: StatementSection
    total_liabilities: Decimal

    equity: StatementSection
    current_net_income: Decimal
    equity_attributable_to_parent: Decimal
    non_controlling_interest: Decimal
    total_equity: Decimal

    total_liabilities_and_equity: Decimal
    is_balanced: bool


# =========================================================================
# Income Statement
# =========================================================================


@dataclass(frozen=True)
class ConsolidatedIncomeStatement:
    """
    Multi-step consolidated income statement.

    net_income == revenue - cost_of_sales - operating_expenses
                  - tax_expense + other_income_expense
    """

    metadata: ReportMetadata

    revenue: StatementSection
    cost_of_sales: StatementSection
    gross_profit: Decimal
    operating_expenses: StatementSection
    operating_income: Decimal
    other_income_expense: StatementSection  # net; positive is income
    income_before_tax: Decimal
    tax_expense: StatementSection
    net_income: Decimal

    net_income_attributable_to_parent: Decimal
    net_income_attributable_to_nci: Decimal


# =========================================================================
# Cash Flow Statement (Indirect Method)
# =========================================================================


@dataclass(frozen=True)
class CashFlowLineItem:
    description: str
    amount: Decimal


@dataclass(frozen=True)
class CashFlowSection:
    label: str
    lines: tuple[CashFlowLineItem, ...]
    total: Decimal


@dataclass(frozen=True)
class ConsolidatedCashFlowStatement:
    """
    Statement of cash flows, indirect method.

    Operating: net income + non-cash adjustments + working capital changes
    Investing: non-current asset changes
    Financing: non-current liability and equity changes
    """

    metadata: ReportMetadata

    net_income: Decimal
    non_cash_adjustments: CashFlowSection
    working_capital_changes: CashFlowSection
    net_cash_from_operations: Decimal

    investing_activities: CashFlowSection
    net_cash_from_investing: Decimal

    financing_activities: CashFlowSection
    net_cash_from_financing: Decimal

    net_change_in_cash: Decimal
    beginning_cash: Decimal
    ending_cash: Decimal
    cash_change_reconciles: bool


# =========================================================================
# Statement of Changes in Equity
# =========================================================================


@dataclass(frozen=True)
class EquityMovement:
    description: str
    amount: Decimal


@dataclass(frozen=True)
class ConsolidatedEquityStatement:
    """Changes in consolidated equity, with the non-controlling interest shown separately."""

    metadata: ReportMetadata

    beginning_equity: Decimal
    beginning_nci: Decimal
    movements: tuple[EquityMovement, ...]
    ending_equity: Decimal
    ending_nci: Decimal
    ending_equity_attributable_to_parent: Decimal

    net_income: Decimal
    net_income_attributable_to_parent: Decimal
    net_income_attributable_to_nci: Decimal
    dividends_declared: Decimal
    other_comprehensive_income: Decimal
    capital_changes: Decimal
    other_changes: Decimal

    reconciles: bool
