"""
Consolidated reporting module (``consolidation_modules.reporting``).

Responsibility
--------------
Balance sheet, income statement, cash flow statement and statement of
changes in equity over a completed run's consolidated trial balance.

Architecture position
---------------------
**Modules layer** -- pure statement builders (``statements``), frozen
report DTOs (``models``) and the read-only ``ConsolidatedReportService``.

Invariants enforced
-------------------
* Assets = Liabilities + Equity, with equity split parent / NCI.
* Net income = revenue - cost of sales - operating expenses - tax
  + other income/expense.
* Reports are derived views; nothing here is persisted.
"""

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
    ReportType,
    StatementLine,
    StatementSection,
)
from consolidation_modules.reporting.service import (
    ConsolidatedReportService,
    consolidated_trial_balance_from_run,
)
from consolidation_modules.reporting.statements import (
    build_balance_sheet,
    build_cash_flow_statement,
    build_equity_statement,
    build_income_statement,
    render_to_dict,
)

__all__ = [
    "CashFlowLineItem",
    "CashFlowSection",
    "ConsolidatedBalanceSheet",
    "ConsolidatedCashFlowStatement",
    "ConsolidatedEquityStatement",
    "ConsolidatedIncomeStatement",
    "ConsolidatedReportService",
    "EquityMovement",
    "ReportMetadata",
    "ReportType",
    "ReportingConfig",
    "StatementLine",
    "StatementSection",
    "build_balance_sheet",
    "build_cash_flow_statement",
    "build_equity_statement",
    "build_income_statement",
    "consolidated_trial_balance_from_run",
    "render_to_dict",
]
