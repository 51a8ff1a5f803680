"""
consolidation_services.run_repository -- Persistence for consolidation runs.

Responsibility:
    Convert between the kernel run ORM rows and the ``ConsolidationRun``
    DTO, serialize the configuration snapshot, hold the per-period lock
    and write the consolidated trial balance of a completed run.

Architecture position:
    Services -- works on a caller-owned session; never commits.  The
    orchestrator wraps each use in ``session_scope``.

Invariants enforced:
    - The lock insert is flushed immediately so that a UNIQUE violation
      surfaces as ConsolidationRunExistsForPeriodError inside the
      initiating transaction.
    - A lock is only released by the run that holds it.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from consolidation_kernel.domain.group import (
    ConsolidationGroup,
    ConsolidationMember,
    ConsolidationMethod,
)
from consolidation_kernel.exceptions import (
    ConsolidationRunExistsForPeriodError,
    ConsolidationRunNotFoundError,
)
from consolidation_kernel.models import (
    ConsolidatedTrialBalanceLineModel,
    ConsolidationRunLockModel,
    ConsolidationRunModel,
    RunStatus,
    StepName,
)
from consolidation_engines.aggregation import ConsolidatedTrialBalance
from consolidation_engines.elimination_types import EliminationRule, EliminationType
from consolidation_engines.selectors import (
    condition_from_dict,
    condition_to_dict,
    selector_from_dict,
    selector_to_dict,
)
from consolidation_engines.types import IssueSeverity, ValidationIssue
from consolidation_services._run_types import (
    ConsolidationRun,
    RunFlags,
    RunSnapshot,
    StepRecord,
)

# ---------------------------------------------------------------------------
# Snapshot serialization
# ---------------------------------------------------------------------------


def _group_to_dict(group: ConsolidationGroup) -> dict[str, Any]:
    return {
        "id": str(group.id),
        "organization_id": str(group.organization_id),
        "name": group.name,
        "reporting_currency": group.reporting_currency,
        "default_consolidation_method": group.default_consolidation_method.value,
        "parent_company_id": str(group.parent_company_id),
        "is_active": group.is_active,
        "description": group.description,
    }


def _group_from_dict(data: dict[str, Any]) -> ConsolidationGroup:
    return ConsolidationGroup(
        id=UUID(data["id"]),
        organization_id=UUID(data["organization_id"]),
        name=data["name"],
        reporting_currency=data["reporting_currency"],
        default_consolidation_method=ConsolidationMethod(data["default_consolidation_method"]),
        parent_company_id=UUID(data["parent_company_id"]),
        is_active=data["is_active"],
        description=data.get("description"),
    )


def _member_to_dict(member: ConsolidationMember) -> dict[str, Any]:
    return {
        "id": str(member.id),
        "group_id": str(member.group_id),
        "company_id": str(member.company_id),
        "ownership_percentage": str(member.ownership_percentage),
        "consolidation_method": member.consolidation_method.value,
        "acquisition_date": member.acquisition_date.isoformat() if member.acquisition_date else None,
    }


def _member_from_dict(data: dict[str, Any]) -> ConsolidationMember:
    acquired = data.get("acquisition_date")
    return ConsolidationMember(
        id=UUID(data["id"]),
        group_id=UUID(data["group_id"]),
        company_id=UUID(data["company_id"]),
        ownership_percentage=Decimal(data["ownership_percentage"]),
        consolidation_method=ConsolidationMethod(data["consolidation_method"]),
        acquisition_date=date.fromisoformat(acquired) if acquired else None,
    )


def _rule_to_dict(rule: EliminationRule) -> dict[str, Any]:
    return {
        "id": str(rule.id),
        "group_id": str(rule.group_id),
        "name": rule.name,
        "elimination_type": rule.elimination_type.value,
        "debit_account_id": str(rule.debit_account_id),
        "credit_account_id": str(rule.credit_account_id),
        "trigger_conditions": [condition_to_dict(c) for c in rule.trigger_conditions],
        "source_accounts": [selector_to_dict(s) for s in rule.source_accounts],
        "target_accounts": [selector_to_dict(s) for s in rule.target_accounts],
        "is_automatic": rule.is_automatic,
        "priority": rule.priority,
        "is_active": rule.is_active,
        "description": rule.description,
    }


def _rule_from_dict(data: dict[str, Any]) -> EliminationRule:
    return EliminationRule(
        id=UUID(data["id"]),
        group_id=UUID(data["group_id"]),
        name=data["name"],
        elimination_type=EliminationType(data["elimination_type"]),
        debit_account_id=UUID(data["debit_account_id"]),
        credit_account_id=UUID(data["credit_account_id"]),
        trigger_conditions=tuple(condition_from_dict(c) for c in data["trigger_conditions"]),
        source_accounts=tuple(selector_from_dict(s) for s in data["source_accounts"]),
        target_accounts=tuple(selector_from_dict(s) for s in data["target_accounts"]),
        is_automatic=data["is_automatic"],
        priority=data["priority"],
        is_active=data["is_active"],
        description=data.get("description"),
    )


def snapshot_to_dict(snapshot: RunSnapshot) -> dict[str, Any]:
    return {
        "group": _group_to_dict(snapshot.group),
        "members": [_member_to_dict(m) for m in snapshot.members],
        "rules": [_rule_to_dict(r) for r in snapshot.rules],
    }


def snapshot_from_dict(data: dict[str, Any]) -> RunSnapshot:
    return RunSnapshot(
        group=_group_from_dict(data["group"]),
        members=tuple(_member_from_dict(m) for m in data["members"]),
        rules=tuple(_rule_from_dict(r) for r in data["rules"]),
    )


def issue_to_dict(issue: ValidationIssue) -> dict[str, Any]:
    return {
        "severity": issue.severity.value,
        "code": issue.code,
        "message": issue.message,
        "reference": issue.reference,
        "details": dict(issue.details),
    }


def issue_from_dict(data: dict[str, Any]) -> ValidationIssue:
    return ValidationIssue(
        severity=IssueSeverity(data["severity"]),
        code=data["code"],
        message=data["message"],
        reference=data.get("reference"),
        details=dict(data.get("details") or {}),
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ConsolidationRunRepository:
    """Run, lock and consolidated trial balance persistence over one session."""

    def __init__(self, session: Session):
        self._session = session

    # --- Runs ---------------------------------------------------------------

    def add(self, run: ConsolidationRun, snapshot: RunSnapshot, config_checksum: str | None = None) -> ConsolidationRunModel:
        model = ConsolidationRunModel(
            id=run.id,
            group_id=run.group_id,
            period_ref=run.period_ref,
            as_of_date=run.as_of_date,
            initiated_by=run.initiated_by,
            reporting_currency=run.reporting_currency,
            skip_validation=run.flags.skip_validation,
            continue_on_warnings=run.flags.continue_on_warnings,
            include_equity_method_investments=run.flags.include_equity_method_investments,
            force_regeneration=run.flags.force_regeneration,
            snapshot=snapshot_to_dict(snapshot),
            config_checksum=config_checksum,
            created_by_id=run.initiated_by,
        )
        self.save(model, run)
        self._session.add(model)
        self._session.flush()
        return model

    def get_model(self, run_id: UUID) -> ConsolidationRunModel:
        model = self._session.get(ConsolidationRunModel, run_id)
        if model is None:
            raise ConsolidationRunNotFoundError(str(run_id))
        return model

    def get_model_for_update(self, run_id: UUID) -> ConsolidationRunModel:
        """Run row with a row lock held until the surrounding transaction ends."""
        model = self._session.execute(
            select(ConsolidationRunModel)
            .where(ConsolidationRunModel.id == run_id)
            .with_for_update()
        ).scalar_one_or_none()
        if model is None:
            raise ConsolidationRunNotFoundError(str(run_id))
        return model

    def get(self, run_id: UUID) -> ConsolidationRun:
        return self.to_dto(self.get_model(run_id))

    def latest_completed(self, group_id: UUID) -> ConsolidationRun | None:
        model = self._session.scalars(
            select(ConsolidationRunModel)
            .where(
                ConsolidationRunModel.group_id == group_id,
                ConsolidationRunModel.status == RunStatus.COMPLETED.value,
            )
            .order_by(
                ConsolidationRunModel.as_of_date.desc(),
                ConsolidationRunModel.completed_at.desc(),
            )
        ).first()
        return self.to_dto(model) if model is not None else None

    def list_for_period(self, group_id: UUID, period_ref: str) -> tuple[ConsolidationRun, ...]:
        rows = self._session.scalars(
            select(ConsolidationRunModel)
            .where(
                ConsolidationRunModel.group_id == group_id,
                ConsolidationRunModel.period_ref == period_ref,
            )
            .order_by(ConsolidationRunModel.created_at, ConsolidationRunModel.id)
        ).all()
        return tuple(self.to_dto(row) for row in rows)

    def delete(self, model: ConsolidationRunModel) -> None:
        self._session.delete(model)
        self._session.flush()

    def snapshot(self, model: ConsolidationRunModel) -> RunSnapshot:
        return snapshot_from_dict(model.snapshot)

    def save(self, model: ConsolidationRunModel, run: ConsolidationRun) -> None:
        """
        Copy the mutable run state from ``run`` onto ``model``.

        A cancellation request already on the row survives a save of a
        DTO read before the request landed.
        """
        model.status = run.status.value
        model.steps = [s.to_dict() for s in run.steps]
        model.warnings = [issue_to_dict(w) for w in run.warnings]
        model.current_step = run.current_step.value if run.current_step else None
        model.cancel_requested = bool(model.cancel_requested) or run.cancel_requested
        model.superseded_by_run_id = run.superseded_by_run_id
        model.started_at = run.started_at
        model.completed_at = run.completed_at
        model.failed_step = run.failed_step.value if run.failed_step else None
        model.error_code = run.error_code
        model.error_message = run.error_message
        model.total_eliminations = run.total_eliminations
        model.net_income_attributable_to_nci = run.net_income_attributable_to_nci

    def to_dto(self, model: ConsolidationRunModel) -> ConsolidationRun:
        return ConsolidationRun(
            id=model.id,
            group_id=model.group_id,
            period_ref=model.period_ref,
            as_of_date=model.as_of_date,
            initiated_by=model.initiated_by,
            reporting_currency=model.reporting_currency,
            status=RunStatus(model.status),
            flags=RunFlags(
                skip_validation=model.skip_validation,
                continue_on_warnings=model.continue_on_warnings,
                include_equity_method_investments=model.include_equity_method_investments,
                force_regeneration=model.force_regeneration,
            ),
            steps=tuple(StepRecord.from_dict(s) for s in model.steps),
            warnings=tuple(issue_from_dict(w) for w in model.warnings),
            current_step=StepName(model.current_step) if model.current_step else None,
            cancel_requested=model.cancel_requested,
            superseded_by_run_id=model.superseded_by_run_id,
            created_at=model.created_at,
            started_at=model.started_at,
            completed_at=model.completed_at,
            failed_step=StepName(model.failed_step) if model.failed_step else None,
            error_code=model.error_code,
            error_message=model.error_message,
            total_eliminations=model.total_eliminations,
            net_income_attributable_to_nci=model.net_income_attributable_to_nci,
            config_checksum=model.config_checksum,
        )

    # --- Lock ---------------------------------------------------------------

    def find_lock(self, group_id: UUID, period_ref: str) -> ConsolidationRunLockModel | None:
        return self._session.scalars(
            select(ConsolidationRunLockModel).where(
                ConsolidationRunLockModel.group_id == group_id,
                ConsolidationRunLockModel.period_ref == period_ref,
            )
        ).first()

    def acquire_lock(self, group_id: UUID, period_ref: str, run_id: UUID, actor_id: UUID) -> None:
        self._session.add(
            ConsolidationRunLockModel(
                group_id=group_id,
                period_ref=period_ref,
                run_id=run_id,
                created_by_id=actor_id,
            )
        )
        try:
            self._session.flush()
        except IntegrityError as e:
            raise ConsolidationRunExistsForPeriodError(str(group_id), period_ref) from e

    def remove_lock(self, lock: ConsolidationRunLockModel) -> bool:
        """Delete ``lock``; False when another transaction removed it first."""
        result = self._session.execute(
            delete(ConsolidationRunLockModel)
            .where(ConsolidationRunLockModel.id == lock.id)
            .execution_options(synchronize_session=False)
        )
        self._session.expunge(lock)
        return result.rowcount == 1

    def release_lock(self, group_id: UUID, period_ref: str, run_id: UUID) -> None:
        lock = self.find_lock(group_id, period_ref)
        if lock is not None and lock.run_id == run_id:
            self._session.delete(lock)
            self._session.flush()

    # --- Consolidated trial balance ------------------------------------------

    def store_trial_balance(
        self,
        model: ConsolidationRunModel,
        tb: ConsolidatedTrialBalance,
    ) -> None:
        for line in tb.lines:
            model.trial_balance_lines.append(
                ConsolidatedTrialBalanceLineModel(
                    account_id=line.account_id,
                    account_number=line.account_number,
                    account_name=line.account_name,
                    category=line.category.value,
                    aggregated_balance=line.aggregated_balance,
                    elimination_amount=line.elimination_amount,
                    consolidated_balance=line.consolidated_balance,
                    nci_portion=line.nci_portion,
                    created_by_id=model.initiated_by,
                )
            )
        self._session.flush()
