"""
Consolidated Report Service (``consolidation_modules.reporting.service``).

Responsibility
--------------
Assemble consolidated financial statements from a completed run's
persisted consolidated trial balance.  Reports are recomputed on every
call and never stored.

Architecture position
---------------------
**Modules layer** -- reads kernel run models, delegates all computation
to the pure functions in ``consolidation_modules.reporting.statements``.

Invariants enforced
-------------------
* Reports come only from COMPLETED runs.
* The balance sheet and income statement identities are re-checked on
  every generation; a failing identity raises.
* Cash flow and equity statements open from the group's latest
  completed run with an earlier as-of date, or from zero.

Failure modes
-------------
* ``ConsolidationRunNotFoundError`` -- unknown run id.
* ``ConsolidationRunNotCompletedError`` -- run is not COMPLETED.
* ``ConsolidatedBalanceSheetNotBalancedError`` /
  ``ConsolidatedIncomeStatementNotBalancedError`` -- identity failure.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from consolidation_kernel.domain.accounts import AccountCategory
from consolidation_kernel.domain.clock import Clock, SystemClock
from consolidation_kernel.domain.currency import CurrencyRegistry
from consolidation_kernel.exceptions import (
    ConsolidationRunNotCompletedError,
    ConsolidationRunNotFoundError,
)
from consolidation_kernel.logging_config import get_logger
from consolidation_kernel.models import ConsolidationRunModel, RunStatus
from consolidation_engines.aggregation import (
    ConsolidatedTrialBalance,
    ConsolidatedTrialBalanceLine,
)
from consolidation_modules.group.orm import ConsolidationGroupModel
from consolidation_modules.reporting.config import ReportingConfig
from consolidation_modules.reporting.models import (
    ConsolidatedBalanceSheet,
    ConsolidatedCashFlowStatement,
    ConsolidatedEquityStatement,
    ConsolidatedIncomeStatement,
    ReportMetadata,
    ReportType,
)
from consolidation_modules.reporting.statements import (
    build_balance_sheet,
    build_cash_flow_statement,
    build_equity_statement,
    build_income_statement,
)

logger = get_logger("modules.reporting.service")

ZERO = Decimal("0")


def consolidated_trial_balance_from_run(run: ConsolidationRunModel) -> ConsolidatedTrialBalance:
    """Rebuild the engine-level trial balance from its persisted rows."""
    lines = tuple(
        ConsolidatedTrialBalanceLine(
            account_id=row.account_id,
            account_number=row.account_number,
            account_name=row.account_name,
            category=AccountCategory(row.category),
            aggregated_balance=row.aggregated_balance,
            elimination_amount=row.elimination_amount,
            consolidated_balance=row.consolidated_balance,
            nci_portion=row.nci_portion,
        )
        for row in sorted(run.trial_balance_lines, key=lambda r: (r.account_number, str(r.account_id)))
    )
    return ConsolidatedTrialBalance(
        reporting_currency=run.reporting_currency,
        as_of_date=run.as_of_date,
        lines=lines,
        total_eliminations=run.total_eliminations or ZERO,
        net_income_attributable_to_nci=run.net_income_attributable_to_nci or ZERO,
    )


class ConsolidatedReportService:
    """
    Consolidated statement generation for completed runs.

    Contract
    --------
    * Read-only: never writes or commits.
    * Every report carries ``ReportMetadata`` stamped by the injected clock.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ReportingConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or ReportingConfig.with_defaults()

    # =========================================================================
    # Reports
    # =========================================================================

    def balance_sheet(self, run_id: UUID) -> ConsolidatedBalanceSheet:
        run, tb = self._completed(run_id)
        report = build_balance_sheet(
            tb, self._metadata(ReportType.BALANCE_SHEET, run), self._config, self._tolerance(tb),
        )
        self._log_generated(ReportType.BALANCE_SHEET, run)
        return report

    def income_statement(self, run_id: UUID) -> ConsolidatedIncomeStatement:
        run, tb = self._completed(run_id)
        report = build_income_statement(
            tb, self._metadata(ReportType.INCOME_STATEMENT, run), self._config, self._tolerance(tb),
        )
        self._log_generated(ReportType.INCOME_STATEMENT, run)
        return report

    def cash_flow_statement(self, run_id: UUID) -> ConsolidatedCashFlowStatement:
        run, tb = self._completed(run_id)
        prior = self._prior_completed_run(run)
        report = build_cash_flow_statement(
            tb,
            consolidated_trial_balance_from_run(prior) if prior is not None else None,
            self._metadata(ReportType.CASH_FLOW, run, prior),
            self._config,
        )
        self._log_generated(ReportType.CASH_FLOW, run, prior)
        return report

    def equity_statement(self, run_id: UUID) -> ConsolidatedEquityStatement:
        run, tb = self._completed(run_id)
        prior = self._prior_completed_run(run)
        report = build_equity_statement(
            tb,
            consolidated_trial_balance_from_run(prior) if prior is not None else None,
            self._metadata(ReportType.EQUITY_STATEMENT, run, prior),
            self._config,
        )
        self._log_generated(ReportType.EQUITY_STATEMENT, run, prior)
        return report

    def generate(self, run_id: UUID, report_type: ReportType):
        """Dispatch to the builder for ``report_type``."""
        match report_type:
            case ReportType.BALANCE_SHEET:
                return self.balance_sheet(run_id)
            case ReportType.INCOME_STATEMENT:
                return self.income_statement(run_id)
            case ReportType.CASH_FLOW:
                return self.cash_flow_statement(run_id)
            case ReportType.EQUITY_STATEMENT:
                return self.equity_statement(run_id)
            case _:
                raise ValueError(f"Unknown report type: {report_type}")

    # =========================================================================
    # Helpers
    # =========================================================================

    def _completed(self, run_id: UUID) -> tuple[ConsolidationRunModel, ConsolidatedTrialBalance]:
        run = self._session.get(ConsolidationRunModel, run_id)
        if run is None:
            raise ConsolidationRunNotFoundError(str(run_id))
        if run.status != RunStatus.COMPLETED.value:
            raise ConsolidationRunNotCompletedError(str(run_id), run.status)
        return run, consolidated_trial_balance_from_run(run)

    def _prior_completed_run(self, run: ConsolidationRunModel) -> ConsolidationRunModel | None:
        return self._session.scalars(
            select(ConsolidationRunModel)
            .where(
                ConsolidationRunModel.group_id == run.group_id,
                ConsolidationRunModel.status == RunStatus.COMPLETED.value,
                ConsolidationRunModel.as_of_date < run.as_of_date,
            )
            .order_by(
                ConsolidationRunModel.as_of_date.desc(),
                ConsolidationRunModel.completed_at.desc(),
            )
        ).first()

    def _tolerance(self, tb: ConsolidatedTrialBalance) -> Decimal:
        if self._config.balance_tolerance is not None:
            return self._config.balance_tolerance
        return CurrencyRegistry.get_minor_unit(tb.reporting_currency)

    def _metadata(
        self,
        report_type: ReportType,
        run: ConsolidationRunModel,
        prior: ConsolidationRunModel | None = None,
    ) -> ReportMetadata:
        group = self._session.get(ConsolidationGroupModel, run.group_id)
        return ReportMetadata(
            report_type=report_type,
            group_id=run.group_id,
            group_name=group.name if group is not None else "",
            run_id=run.id,
            currency=run.reporting_currency,
            as_of_date=run.as_of_date,
            generated_at=self._clock.now().isoformat(),
            comparative_run_id=prior.id if prior is not None else None,
            comparative_date=prior.as_of_date if prior is not None else None,
        )

    def _log_generated(
        self,
        report_type: ReportType,
        run: ConsolidationRunModel,
        prior: ConsolidationRunModel | None = None,
    ) -> None:
        logger.info("consolidated_report_generated", extra={
            "report_type": report_type.value,
            "run_id": str(run.id),
            "group_id": str(run.group_id),
            "comparative_run_id": str(prior.id) if prior is not None else None,
        })
