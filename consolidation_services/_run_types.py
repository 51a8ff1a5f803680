"""
consolidation_services._run_types -- Consolidation run DTOs and state tables.

Responsibility:
    Frozen dataclasses for the run lifecycle (flags, step records, the run
    itself, the configuration snapshot) and the run / step transition
    tables validated on every mutation.

Architecture position:
    Services -- these types live here because the orchestrator that
    produces and consumes them lives here.  Status enums come from the
    kernel run model so persistence and DTOs share one vocabulary.

Invariants enforced:
    - Run: PENDING -> IN_PROGRESS -> COMPLETED | FAILED;
      PENDING | IN_PROGRESS -> CANCELLED.  Terminal states are final.
    - Step: NOT_STARTED -> IN_PROGRESS -> SUCCEEDED | FAILED;
      NOT_STARTED -> SKIPPED.
    - Any other transition raises InvalidRunTransitionError /
      InvalidStepTransitionError.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from consolidation_kernel.domain.group import ConsolidationGroup, ConsolidationMember
from consolidation_kernel.exceptions import (
    InvalidRunTransitionError,
    InvalidStepTransitionError,
)
from consolidation_kernel.models.consolidation_run import RunStatus, StepName, StepStatus
from consolidation_engines.elimination_types import EliminationRule
from consolidation_engines.types import ValidationIssue

# ---------------------------------------------------------------------------
# Transition tables
# ---------------------------------------------------------------------------

RUN_TRANSITIONS: dict[RunStatus, frozenset[RunStatus]] = {
    RunStatus.PENDING: frozenset({RunStatus.IN_PROGRESS, RunStatus.CANCELLED}),
    RunStatus.IN_PROGRESS: frozenset(
        {RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.CANCELLED}
    ),
    RunStatus.COMPLETED: frozenset(),
    RunStatus.FAILED: frozenset(),
    RunStatus.CANCELLED: frozenset(),
}

STEP_TRANSITIONS: dict[StepStatus, frozenset[StepStatus]] = {
    StepStatus.NOT_STARTED: frozenset({StepStatus.IN_PROGRESS, StepStatus.SKIPPED}),
    StepStatus.IN_PROGRESS: frozenset({StepStatus.SUCCEEDED, StepStatus.FAILED}),
    StepStatus.SUCCEEDED: frozenset(),
    StepStatus.FAILED: frozenset(),
    StepStatus.SKIPPED: frozenset(),
}

CANCELLABLE = frozenset({RunStatus.PENDING, RunStatus.IN_PROGRESS})
DELETABLE = frozenset({RunStatus.PENDING, RunStatus.FAILED})


def validate_run_transition(run_id: UUID, current: RunStatus, target: RunStatus) -> None:
    if target not in RUN_TRANSITIONS[current]:
        raise InvalidRunTransitionError(str(run_id), current.value, target.value)


def validate_step_transition(
    run_id: UUID, step: StepName, current: StepStatus, target: StepStatus,
) -> None:
    if target not in STEP_TRANSITIONS[current]:
        raise InvalidStepTransitionError(str(run_id), step.value, current.value, target.value)


# ---------------------------------------------------------------------------
# DTOs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RunFlags:
    """Options fixed at initiate."""
    skip_validation: bool = False
    continue_on_warnings: bool = False
    include_equity_method_investments: bool = False
    force_regeneration: bool = False


@dataclass(frozen=True)
class StepRecord:
    """Status and timing of one pipeline step."""
    name: StepName
    status: StepStatus = StepStatus.NOT_STARTED
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int | None = None
    error_code: str | None = None
    error_message: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def transition(self, run_id: UUID, target: StepStatus, **changes: Any) -> StepRecord:
        validate_step_transition(run_id, self.name, self.status, target)
        return replace(self, status=target, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name.value,
            "status": self.status.value,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "details": self.details,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StepRecord:
        return cls(
            name=StepName(data["name"]),
            status=StepStatus(data["status"]),
            started_at=datetime.fromisoformat(data["started_at"]) if data.get("started_at") else None,
            completed_at=(
                datetime.fromisoformat(data["completed_at"]) if data.get("completed_at") else None
            ),
            duration_ms=data.get("duration_ms"),
            error_code=data.get("error_code"),
            error_message=data.get("error_message"),
            details=dict(data.get("details") or {}),
        )


def initial_steps() -> tuple[StepRecord, ...]:
    return tuple(StepRecord(name=step) for step in StepName)


@dataclass(frozen=True)
class RunSnapshot:
    """Configuration a run executes against, captured at initiate."""
    group: ConsolidationGroup
    members: tuple[ConsolidationMember, ...]
    rules: tuple[EliminationRule, ...]

    @property
    def company_ids(self) -> frozenset[UUID]:
        return frozenset({self.group.parent_company_id} | {m.company_id for m in self.members})


@dataclass(frozen=True)
class ConsolidationRun:
    """Auditable record of one consolidation attempt."""
    id: UUID
    group_id: UUID
    period_ref: str
    as_of_date: date
    initiated_by: UUID
    reporting_currency: str
    status: RunStatus = RunStatus.PENDING
    flags: RunFlags = field(default_factory=RunFlags)
    steps: tuple[StepRecord, ...] = field(default_factory=initial_steps)
    warnings: tuple[ValidationIssue, ...] = ()
    current_step: StepName | None = None
    cancel_requested: bool = False
    superseded_by_run_id: UUID | None = None
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    failed_step: StepName | None = None
    error_code: str | None = None
    error_message: str | None = None
    total_eliminations: Decimal | None = None
    net_income_attributable_to_nci: Decimal | None = None
    config_checksum: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def step(self, name: StepName) -> StepRecord:
        for record in self.steps:
            if record.name == name:
                return record
        raise KeyError(name)
