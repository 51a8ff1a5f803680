"""
consolidation_services.orchestrator -- Consolidation run sequencing.

Responsibility:
    Drive a consolidation run through its five steps (collect, translate,
    eliminate, aggregate, validate), persist step-by-step progress, and
    expose the run lifecycle (initiate, cancel, delete) and the read side
    (run status, consolidated trial balance, consolidated reports).
    All calculation lives in the engines; the orchestrator adds
    sequencing, collaborator calls, persistence and evidence.

Architecture position:
    Services -- stateful orchestration over engines + modules + kernel.
    Composes GroupService, EliminationRuleService and
    ConsolidatedReportService; calls the RateResolver,
    TrialBalanceProvider and IntercompanyTransactionProvider ports.

Invariants enforced:
    - One non-terminal run per (group, period): a lock row with a UNIQUE
      constraint is inserted in the same transaction as the run row.
    - A run executes against the group/member/rule snapshot captured at
      creation; later configuration edits never reach it.
    - Every run or step status change is validated against the transition
      tables in ``_run_types``.
    - Each mutation commits in its own short transaction and no session is
      held while a collaborator or engine runs, so cancel() from another
      caller is observed at the next step boundary.
    - A failed run never stores a consolidated trial balance.

Failure modes:
    - ConsolidationGroupNotFoundError / ConsolidationGroupInactiveError on
      creation.
    - ConsolidationRunExistsForPeriodError when the period is held and
      force_regeneration is false.
    - Any exception raised inside a step marks the step and the run
      FAILED (error_code is the exception's ``code`` or its type name);
      execute() returns the failed run instead of raising.

Audit relevance:
    Terminal runs are kept. Step records carry timing, counts and totals;
    a superseded run records the id of the run that replaced it.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from consolidation_config import ConsolidationConfig, get_active_config
from consolidation_kernel.db.engine import session_scope
from consolidation_kernel.domain.accounts import AccountInfo
from consolidation_kernel.domain.clock import Clock, SystemClock
from consolidation_kernel.domain.group import ConsolidationMember, ConsolidationMethod
from consolidation_kernel.domain.trial_balance import MemberTrialBalance
from consolidation_kernel.exceptions import (
    ConsolidatedBalanceSheetNotBalancedError,
    ConsolidatedTrialBalanceNotAvailableError,
    ConsolidatedTrialBalanceNotBalancedError,
    ConsolidationGroupInactiveError,
    ConsolidationKernelError,
    ConsolidationRunCannotBeCancelledError,
    ConsolidationRunCannotBeDeletedError,
    ConsolidationRunExistsForPeriodError,
    ConsolidationRunNotCompletedError,
    ExchangeRateUnavailableError,
    InvariantViolationError,
    MemberTrialBalanceNotBalancedError,
    NetIncomeAttributionError,
    TrialBalanceMissingError,
    UnbalancedEliminationError,
)
from consolidation_kernel.logging_config import LogContext, get_logger
from consolidation_kernel.models import ConsolidationRunModel, RunStatus, StepName, StepStatus
from consolidation_engines.aggregation import ConsolidatedTrialBalance, ConsolidationAggregator
from consolidation_engines.elimination import EliminationRuleEngine
from consolidation_engines.elimination_types import EliminationResult, IntercompanyTransaction
from consolidation_engines.minority_interest import AllocationResult, MinorityInterestAllocator
from consolidation_engines.translation import CurrencyTranslator
from consolidation_engines.types import (
    GroupAccounts,
    IssueSeverity,
    RateKey,
    TranslatedTrialBalance,
    ValidationIssue,
)
from consolidation_engines.validation import ConsolidationValidator, balance_sheet_totals
from consolidation_modules.elimination.service import EliminationRuleService
from consolidation_modules.group.service import GroupService
from consolidation_modules.reporting.config import ReportingConfig
from consolidation_modules.reporting.models import (
    ConsolidatedBalanceSheet,
    ConsolidatedCashFlowStatement,
    ConsolidatedEquityStatement,
    ConsolidatedIncomeStatement,
    ReportType,
)
from consolidation_modules.reporting.service import (
    ConsolidatedReportService,
    consolidated_trial_balance_from_run,
)
from consolidation_services._run_types import (
    CANCELLABLE,
    DELETABLE,
    ConsolidationRun,
    RunFlags,
    RunSnapshot,
    StepRecord,
    validate_run_transition,
)
from consolidation_services.ports import (
    IntercompanyTransactionProvider,
    RateResolver,
    TrialBalanceProvider,
)
from consolidation_services.run_repository import ConsolidationRunRepository

logger = get_logger("services.consolidation")


@dataclass
class _Pipeline:
    """Working state handed from step to step within one execute() call."""

    run: ConsolidationRun
    snapshot: RunSnapshot
    members: dict[UUID, ConsolidationMember] = field(default_factory=dict)
    trial_balances: dict[UUID, MemberTrialBalance] = field(default_factory=dict)
    transactions: list[IntercompanyTransaction] = field(default_factory=list)
    translated: list[TranslatedTrialBalance] = field(default_factory=list)
    translated_transactions: list[IntercompanyTransaction] = field(default_factory=list)
    rates: dict[RateKey, Decimal] = field(default_factory=dict)
    allocation: AllocationResult | None = None
    accounts: dict[UUID, AccountInfo] = field(default_factory=dict)
    eliminations: EliminationResult | None = None
    trial_balance: ConsolidatedTrialBalance | None = None
    warnings: list[ValidationIssue] = field(default_factory=list)


def _with_step(steps: tuple[StepRecord, ...], record: StepRecord) -> tuple[StepRecord, ...]:
    return tuple(record if s.name == record.name else s for s in steps)


def _duration_ms(started: datetime | None, finished: datetime) -> int | None:
    if started is None:
        return None
    return int((finished - started).total_seconds() * 1000)


class ConsolidationOrchestrator:
    """
    Sequences consolidation runs over a session factory.

    Contract:
        ``initiate()`` creates and executes a run and returns it in a
        terminal state. ``create_run()`` + ``execute()`` split the same
        work for callers that start execution elsewhere.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        rate_resolver: RateResolver,
        trial_balance_provider: TrialBalanceProvider,
        intercompany_provider: IntercompanyTransactionProvider,
        clock: Clock | None = None,
        config: ConsolidationConfig | None = None,
        translator: CurrencyTranslator | None = None,
        elimination_engine: EliminationRuleEngine | None = None,
        allocator: MinorityInterestAllocator | None = None,
        aggregator: ConsolidationAggregator | None = None,
        validator: ConsolidationValidator | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._rates = rate_resolver
        self._trial_balances = trial_balance_provider
        self._intercompany = intercompany_provider
        self._clock = clock or SystemClock()
        self._config = config or get_active_config()
        self._translator = translator or CurrencyTranslator()
        self._elimination = elimination_engine or EliminationRuleEngine()
        self._allocator = allocator or MinorityInterestAllocator()
        self._aggregator = aggregator or ConsolidationAggregator()
        self._validator = validator or ConsolidationValidator()
        self._group_accounts = GroupAccounts(
            translation_adjustment=self._config.translation_adjustment_account.to_account_info(),
            equity_method_investment=self._config.equity_method_investment_account.to_account_info(),
            equity_in_earnings=self._config.equity_in_earnings_account.to_account_info(),
            equity_method_reserve=self._config.equity_method_reserve_account.to_account_info(),
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initiate(
        self,
        group_id: UUID,
        period_ref: str,
        as_of_date: date,
        initiated_by: UUID,
        flags: RunFlags | None = None,
    ) -> ConsolidationRun:
        """Create a run for the period and execute it to a terminal state."""
        run = self.create_run(group_id, period_ref, as_of_date, initiated_by, flags)
        return self.execute(run.id)

    def create_run(
        self,
        group_id: UUID,
        period_ref: str,
        as_of_date: date,
        initiated_by: UUID,
        flags: RunFlags | None = None,
    ) -> ConsolidationRun:
        """Snapshot the group configuration and claim the period. Returns a PENDING run."""
        flags = flags or RunFlags()
        run_id = uuid4()

        with session_scope(self._session_factory) as session:
            groups = GroupService(session)
            group = groups.get_group(group_id)
            if not group.is_active:
                raise ConsolidationGroupInactiveError(str(group_id))
            snapshot = RunSnapshot(
                group=group,
                members=groups.list_members(group_id),
                rules=EliminationRuleService(session).list_rules(group_id),
            )

            repo = ConsolidationRunRepository(session)
            superseded_id = self._claim_period(
                session, repo, group_id, period_ref, run_id, flags.force_regeneration,
            )
            run = ConsolidationRun(
                id=run_id,
                group_id=group_id,
                period_ref=period_ref,
                as_of_date=as_of_date,
                initiated_by=initiated_by,
                reporting_currency=group.reporting_currency,
                flags=flags,
                config_checksum=self._config.checksum or None,
            )
            model = repo.add(run, snapshot, config_checksum=run.config_checksum)
            repo.acquire_lock(group_id, period_ref, run_id, initiated_by)
            run = repo.to_dto(model)

        logger.info(
            "consolidation_run_initiated",
            extra={
                "run_id": str(run_id),
                "group_id": str(group_id),
                "period_ref": period_ref,
                "as_of_date": str(as_of_date),
                "actor_id": str(initiated_by),
                "member_count": len(snapshot.members),
                "rule_count": len(snapshot.rules),
                "force_regeneration": flags.force_regeneration,
                "superseded_run_id": str(superseded_id) if superseded_id else None,
            },
        )
        return run

    def _claim_period(
        self,
        session: Session,
        repo: ConsolidationRunRepository,
        group_id: UUID,
        period_ref: str,
        run_id: UUID,
        force_regeneration: bool,
    ) -> UUID | None:
        """Free the period's lock for ``run_id``; returns the superseded run id, if any."""
        lock = repo.find_lock(group_id, period_ref)
        if lock is None:
            return None

        holder = session.execute(
            select(ConsolidationRunModel)
            .where(ConsolidationRunModel.id == lock.run_id)
            .with_for_update()
        ).scalar_one_or_none()
        if holder is not None and not RunStatus(holder.status).is_terminal:
            if not force_regeneration:
                raise ConsolidationRunExistsForPeriodError(
                    str(group_id), period_ref, str(lock.run_id)
                )
            prior = repo.to_dto(holder)
            validate_run_transition(prior.id, prior.status, RunStatus.CANCELLED)
            repo.save(
                holder,
                replace(
                    prior,
                    status=RunStatus.CANCELLED,
                    cancel_requested=True,
                    superseded_by_run_id=run_id,
                    completed_at=self._clock.now(),
                ),
            )
            logger.info(
                "consolidation_run_superseded",
                extra={"run_id": str(prior.id), "superseded_by_run_id": str(run_id)},
            )
            superseded = prior.id
        else:
            # Lock left behind by a run that already reached a terminal state.
            superseded = None

        if not repo.remove_lock(lock):
            # A concurrent claim for the same period got there first.
            raise ConsolidationRunExistsForPeriodError(str(group_id), period_ref)
        return superseded

    def execute(self, run_id: UUID) -> ConsolidationRun:
        """Run every step of a PENDING run. Returns the run in its final state."""
        with session_scope(self._session_factory) as session:
            repo = ConsolidationRunRepository(session)
            model = repo.get_model(run_id)
            run = repo.to_dto(model)
            snapshot = repo.snapshot(model)

        with LogContext.bind(
            run_id=str(run.id),
            group_id=str(run.group_id),
            period_ref=run.period_ref,
            actor_id=str(run.initiated_by),
        ):
            run = self._start(run_id)
            if run.status != RunStatus.IN_PROGRESS:
                return run

            state = _Pipeline(run=run, snapshot=snapshot)
            handlers: dict[StepName, Callable[[_Pipeline], dict[str, Any]]] = {
                StepName.COLLECTING: self._collect,
                StepName.TRANSLATING: self._translate,
                StepName.ELIMINATING: self._eliminate,
                StepName.AGGREGATING: self._aggregate,
                StepName.VALIDATING: self._validate,
            }

            for step in StepName:
                stopped = self._stop_if_cancelled(run_id)
                if stopped is not None:
                    return stopped
                if step == StepName.VALIDATING and run.flags.skip_validation:
                    self._skip_step(run_id, step)
                    continue
                if not self._run_step(run_id, step, handlers[step], state):
                    return self.get_run(run_id)

            stopped = self._stop_if_cancelled(run_id)
            if stopped is not None:
                return stopped
            return self._complete(run_id, state)

    def cancel(self, run_id: UUID) -> ConsolidationRun:
        """
        Cancel a PENDING run immediately, or request cancellation of an
        IN_PROGRESS run (honoured at the next step boundary).
        """
        with session_scope(self._session_factory) as session:
            repo = ConsolidationRunRepository(session)
            model = repo.get_model_for_update(run_id)
            run = repo.to_dto(model)
            if run.status not in CANCELLABLE:
                raise ConsolidationRunCannotBeCancelledError(str(run_id), run.status.value)

            if run.status == RunStatus.PENDING:
                run = self._cancelled(repo, model, run)
            else:
                run = replace(run, cancel_requested=True)
                repo.save(model, run)

        logger.info(
            "consolidation_run_cancel_requested",
            extra={"run_id": str(run_id), "status": run.status.value},
        )
        return run

    def delete_run(self, run_id: UUID) -> None:
        """Delete a PENDING or FAILED run; any other status is kept as audit trail."""
        with session_scope(self._session_factory) as session:
            repo = ConsolidationRunRepository(session)
            model = repo.get_model_for_update(run_id)
            status = RunStatus(model.status)
            if status not in DELETABLE:
                raise ConsolidationRunCannotBeDeletedError(str(run_id), status.value)
            repo.release_lock(model.group_id, model.period_ref, model.id)
            repo.delete(model)

        logger.info(
            "consolidation_run_deleted",
            extra={"run_id": str(run_id), "status": status.value},
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_run(self, run_id: UUID) -> ConsolidationRun:
        with session_scope(self._session_factory) as session:
            return ConsolidationRunRepository(session).get(run_id)

    def get_status(self, run_id: UUID) -> RunStatus:
        return self.get_run(run_id).status

    def list_runs(self, group_id: UUID, period_ref: str) -> tuple[ConsolidationRun, ...]:
        with session_scope(self._session_factory) as session:
            return ConsolidationRunRepository(session).list_for_period(group_id, period_ref)

    def get_latest_completed_run(self, group_id: UUID) -> ConsolidationRun | None:
        with session_scope(self._session_factory) as session:
            return ConsolidationRunRepository(session).latest_completed(group_id)

    def get_trial_balance(self, run_id: UUID) -> ConsolidatedTrialBalance:
        with session_scope(self._session_factory) as session:
            model = ConsolidationRunRepository(session).get_model(run_id)
            if model.status != RunStatus.COMPLETED.value:
                raise ConsolidationRunNotCompletedError(str(run_id), model.status)
            if not model.trial_balance_lines:
                raise ConsolidatedTrialBalanceNotAvailableError(str(run_id))
            return consolidated_trial_balance_from_run(model)

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def get_balance_sheet(self, run_id: UUID) -> ConsolidatedBalanceSheet:
        return self.generate_report(run_id, ReportType.BALANCE_SHEET)

    def get_income_statement(self, run_id: UUID) -> ConsolidatedIncomeStatement:
        return self.generate_report(run_id, ReportType.INCOME_STATEMENT)

    def get_cash_flow_statement(self, run_id: UUID) -> ConsolidatedCashFlowStatement:
        return self.generate_report(run_id, ReportType.CASH_FLOW)

    def get_equity_statement(self, run_id: UUID) -> ConsolidatedEquityStatement:
        return self.generate_report(run_id, ReportType.EQUITY_STATEMENT)

    def generate_report(self, run_id: UUID, report_type: ReportType):
        with session_scope(self._session_factory) as session:
            service = ConsolidatedReportService(
                session,
                clock=self._clock,
                config=ReportingConfig(balance_tolerance=self._config.balance_tolerance),
            )
            return service.generate(run_id, report_type)

    # ------------------------------------------------------------------
    # Run state changes
    # ------------------------------------------------------------------

    def _start(self, run_id: UUID) -> ConsolidationRun:
        with session_scope(self._session_factory) as session:
            repo = ConsolidationRunRepository(session)
            model = repo.get_model_for_update(run_id)
            run = repo.to_dto(model)
            if run.status != RunStatus.PENDING:
                return run
            if run.cancel_requested:
                return self._cancelled(repo, model, run)
            validate_run_transition(run.id, run.status, RunStatus.IN_PROGRESS)
            run = replace(run, status=RunStatus.IN_PROGRESS, started_at=self._clock.now())
            repo.save(model, run)

        logger.info("consolidation_run_started", extra={"run_id": str(run_id)})
        return run

    def _cancelled(
        self,
        repo: ConsolidationRunRepository,
        model: ConsolidationRunModel,
        run: ConsolidationRun,
    ) -> ConsolidationRun:
        validate_run_transition(run.id, run.status, RunStatus.CANCELLED)
        run = replace(
            run,
            status=RunStatus.CANCELLED,
            cancel_requested=True,
            current_step=None,
            completed_at=self._clock.now(),
        )
        repo.save(model, run)
        repo.release_lock(run.group_id, run.period_ref, run.id)
        logger.info(
            "consolidation_run_cancelled",
            extra={"run_id": str(run.id), "superseded_by_run_id": (
                str(run.superseded_by_run_id) if run.superseded_by_run_id else None
            )},
        )
        return run

    def _stop_if_cancelled(self, run_id: UUID) -> ConsolidationRun | None:
        """Step boundary check: the run if it must stop, else None."""
        with session_scope(self._session_factory) as session:
            repo = ConsolidationRunRepository(session)
            model = repo.get_model_for_update(run_id)
            run = repo.to_dto(model)
            if run.is_terminal:
                return run
            if run.cancel_requested:
                return self._cancelled(repo, model, run)
        return None

    def _skip_step(self, run_id: UUID, step: StepName) -> None:
        with session_scope(self._session_factory) as session:
            repo = ConsolidationRunRepository(session)
            model = repo.get_model_for_update(run_id)
            run = repo.to_dto(model)
            record = run.step(step).transition(run_id, StepStatus.SKIPPED)
            repo.save(model, replace(run, steps=_with_step(run.steps, record)))
        logger.info("consolidation_step_skipped", extra={"step": step.value})

    def _run_step(
        self,
        run_id: UUID,
        step: StepName,
        handler: Callable[[_Pipeline], dict[str, Any]],
        state: _Pipeline,
    ) -> bool:
        started = self._clock.now()
        with session_scope(self._session_factory) as session:
            repo = ConsolidationRunRepository(session)
            model = repo.get_model_for_update(run_id)
            run = repo.to_dto(model)
            record = run.step(step).transition(run_id, StepStatus.IN_PROGRESS, started_at=started)
            repo.save(model, replace(run, steps=_with_step(run.steps, record), current_step=step))

        with LogContext.bind(step=step.value):
            logger.info("consolidation_step_started", extra={"step": step.value})
            try:
                details = handler(state)
            except Exception as exc:
                self._fail_step(run_id, step, exc)
                return False

            finished = self._clock.now()
            with session_scope(self._session_factory) as session:
                repo = ConsolidationRunRepository(session)
                model = repo.get_model_for_update(run_id)
                run = repo.to_dto(model)
                record = run.step(step).transition(
                    run_id,
                    StepStatus.SUCCEEDED,
                    completed_at=finished,
                    duration_ms=_duration_ms(record.started_at, finished),
                    details=details,
                )
                repo.save(
                    model,
                    replace(run, steps=_with_step(run.steps, record), warnings=tuple(state.warnings)),
                )

            logger.info(
                "consolidation_step_completed",
                extra={"step": step.value, "duration_ms": record.duration_ms},
            )
        return True

    def _fail_step(self, run_id: UUID, step: StepName, exc: Exception) -> None:
        error_code = getattr(exc, "code", None) or type(exc).__name__
        message = str(exc)
        finished = self._clock.now()

        with session_scope(self._session_factory) as session:
            repo = ConsolidationRunRepository(session)
            model = repo.get_model_for_update(run_id)
            run = repo.to_dto(model)
            current = run.step(step)
            record = current.transition(
                run_id,
                StepStatus.FAILED,
                completed_at=finished,
                duration_ms=_duration_ms(current.started_at, finished),
                error_code=error_code,
                error_message=message,
            )
            run = replace(run, steps=_with_step(run.steps, record))
            if not run.is_terminal:
                validate_run_transition(run.id, run.status, RunStatus.FAILED)
                run = replace(
                    run,
                    status=RunStatus.FAILED,
                    failed_step=step,
                    error_code=error_code,
                    error_message=message,
                    completed_at=finished,
                )
                repo.release_lock(run.group_id, run.period_ref, run.id)
            repo.save(model, run)

        logger.warning(
            "consolidation_step_failed",
            extra={"step": step.value, "error_code": error_code, "error_message": message},
            exc_info=not isinstance(exc, ConsolidationKernelError),
        )

    def _complete(self, run_id: UUID, state: _Pipeline) -> ConsolidationRun:
        tb = state.trial_balance
        with session_scope(self._session_factory) as session:
            repo = ConsolidationRunRepository(session)
            model = repo.get_model_for_update(run_id)
            run = repo.to_dto(model)
            # Superseded or cancelled after the last step boundary.
            if run.is_terminal:
                return run
            if run.cancel_requested:
                return self._cancelled(repo, model, run)
            validate_run_transition(run.id, run.status, RunStatus.COMPLETED)
            repo.store_trial_balance(model, tb)
            run = replace(
                run,
                status=RunStatus.COMPLETED,
                current_step=None,
                completed_at=self._clock.now(),
                warnings=tuple(state.warnings),
                total_eliminations=tb.total_eliminations,
                net_income_attributable_to_nci=tb.net_income_attributable_to_nci,
            )
            repo.save(model, run)
            repo.release_lock(run.group_id, run.period_ref, run.id)

        logger.info(
            "consolidation_run_completed",
            extra={
                "run_id": str(run_id),
                "account_count": len(tb.lines),
                "total_eliminations": str(tb.total_eliminations),
                "consolidated_net_income": str(tb.consolidated_net_income),
                "net_income_attributable_to_nci": str(tb.net_income_attributable_to_nci),
                "warning_count": len(state.warnings),
            },
        )
        return run

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _collect(self, state: _Pipeline) -> dict[str, Any]:
        run, snapshot = state.run, state.snapshot
        roster = [ConsolidationMember.for_parent(snapshot.group), *snapshot.members]
        excluded: list[str] = []

        for member in sorted(roster, key=lambda m: str(m.company_id)):
            if (
                member.consolidation_method == ConsolidationMethod.EQUITY
                and not run.flags.include_equity_method_investments
            ):
                excluded.append(str(member.company_id))
                continue

            tb = self._trial_balances.get_trial_balance(member.company_id, run.as_of_date)
            if tb is None:
                raise TrialBalanceMissingError(str(member.company_id), run.as_of_date)
            if abs(tb.total) > self._config.tolerance_for(tb.functional_currency):
                raise MemberTrialBalanceNotBalancedError(
                    str(member.company_id), tb.total, tb.functional_currency
                )
            state.members[member.company_id] = member
            state.trial_balances[member.company_id] = tb

        company_ids = snapshot.company_ids
        fetched = list(self._intercompany.get_transactions(snapshot.group.id, run.period_ref))
        state.transactions = [
            t for t in fetched
            if t.from_company_id in company_ids and t.to_company_id in company_ids
        ]

        return {
            "trial_balance_count": len(state.trial_balances),
            "excluded_members": excluded,
            "transaction_count": len(state.transactions),
            "out_of_group_transaction_count": len(fetched) - len(state.transactions),
        }

    def _resolve_rate(self, state: _Pipeline, key: RateKey, company_id: UUID | None = None) -> None:
        if key in state.rates:
            return
        rate = self._rates.get_rate(key.from_currency, key.to_currency, key.on_date, key.rate_class)
        if rate is None:
            raise ExchangeRateUnavailableError(
                key.from_currency,
                key.to_currency,
                key.on_date,
                key.rate_class.value,
                company_id=str(company_id) if company_id else None,
            )
        state.rates[key] = rate

    def _translate(self, state: _Pipeline) -> dict[str, Any]:
        currency = state.run.reporting_currency
        as_of = state.run.as_of_date

        for company_id, tb in state.trial_balances.items():
            member = state.members[company_id]
            for key in self._translator.required_rates(tb, member, currency, as_of):
                self._resolve_rate(state, key, company_id)
            state.translated.append(
                self._translator.translate(
                    tb, member, currency, as_of, state.rates,
                    self._group_accounts.translation_adjustment,
                )
            )

        for txn in state.transactions:
            key = self._translator.transaction_rate_key(txn, currency, as_of)
            if key is not None:
                self._resolve_rate(state, key)
            state.translated_transactions.append(
                self._translator.translate_transaction(txn, currency, as_of, state.rates)
            )

        return {
            "translated_count": len(state.translated),
            "foreign_count": sum(1 for t in state.translated if not t.is_identity),
            "rate_count": len(state.rates),
            "cta_total": str(sum((t.cta_amount for t in state.translated), Decimal("0"))),
        }

    def _collect_accounts(self, state: _Pipeline) -> dict[UUID, AccountInfo]:
        accounts: dict[UUID, AccountInfo] = {a.account_id: a for a in self._group_accounts.all()}
        for tb in state.translated:
            for line in tb.lines:
                known = accounts.get(line.account_id)
                if known is None or (known.is_active and not line.account.is_active):
                    accounts[line.account_id] = line.account
        return accounts

    def _eliminate(self, state: _Pipeline) -> dict[str, Any]:
        run = state.run
        state.allocation = self._allocator.allocate(
            state.translated,
            state.members,
            run.reporting_currency,
            self._group_accounts,
            run.flags.include_equity_method_investments,
        )
        state.accounts = self._collect_accounts(state)
        result = self._elimination.evaluate(
            state.snapshot.group,
            state.snapshot.rules,
            state.allocation.lines,
            state.translated_transactions,
            state.accounts,
            run.reporting_currency,
            self._config.materiality_threshold,
            run.flags.continue_on_warnings,
            state.members,
        )
        state.eliminations = result
        state.warnings.extend(result.issues)

        return {
            "applied_count": len(result.applied),
            "pending_manual_count": len(result.pending_manual),
            "skipped": [
                {"rule_id": str(s.rule_id), "rule_name": s.rule_name, "reason": s.reason}
                for s in result.skipped
            ],
            "total_eliminated": str(result.total_eliminated),
            "entries": [
                {
                    "rule_id": str(e.rule_id),
                    "rule_name": e.rule_name,
                    "priority": e.priority,
                    "debit_account_id": str(e.debit_account_id),
                    "credit_account_id": str(e.credit_account_id),
                    "amount": str(e.amount.amount),
                }
                for e in result.applied
            ],
        }

    def _aggregate(self, state: _Pipeline) -> dict[str, Any]:
        tb = self._aggregator.aggregate(
            state.allocation,
            state.eliminations.applied,
            state.accounts,
            state.run.reporting_currency,
            state.run.as_of_date,
        )
        state.trial_balance = tb
        return {
            "account_count": len(tb.lines),
            "total_debits": str(tb.total_debits),
            "total_credits": str(tb.total_credits),
            "total_eliminations": str(tb.total_eliminations),
            "consolidated_net_income": str(tb.consolidated_net_income),
            "net_income_attributable_to_nci": str(tb.net_income_attributable_to_nci),
        }

    def _validate(self, state: _Pipeline) -> dict[str, Any]:
        tb = state.trial_balance
        tolerance = self._config.tolerance_for(tb.reporting_currency)
        issues = self._validator.validate(tb, state.eliminations.applied, tolerance)
        errors = [i for i in issues if i.severity == IssueSeverity.ERROR]
        if errors and not state.run.flags.continue_on_warnings:
            raise self._issue_error(errors[0], state)

        state.warnings.extend(i.as_warning() for i in issues)
        return {"issue_count": len(issues), "tolerance": str(tolerance)}

    def _issue_error(self, issue: ValidationIssue, state: _Pipeline) -> InvariantViolationError:
        tb = state.trial_balance
        match issue.code:
            case ConsolidatedTrialBalanceNotBalancedError.code:
                return ConsolidatedTrialBalanceNotBalancedError(
                    tb.total_debits, tb.total_credits, tb.reporting_currency
                )
            case ConsolidatedBalanceSheetNotBalancedError.code:
                return ConsolidatedBalanceSheetNotBalancedError(*balance_sheet_totals(tb))
            case NetIncomeAttributionError.code:
                return NetIncomeAttributionError(
                    tb.consolidated_net_income,
                    tb.net_income_attributable_to_parent,
                    tb.net_income_attributable_to_nci,
                )
            case UnbalancedEliminationError.code:
                entry = next(
                    e for e in state.eliminations.applied if str(e.rule_id) == issue.reference
                )
                debit, credit = entry.lines
                return UnbalancedEliminationError(issue.reference, debit.debit, credit.credit)
            case _:
                return InvariantViolationError(issue.message)
