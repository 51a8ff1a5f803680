"""
Module: consolidation_kernel.models.consolidation_run
Responsibility: ORM persistence for consolidation runs, the per-period run
    lock and the run-scoped consolidated trial balance.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - At most one lock row per (group_id, period_ref) (uq_run_lock_group_period).
      The lock row exists while a non-terminal run holds the period and is
      inserted in the same transaction as the run row.
    - A consolidated trial balance has one row per account per run
      (uq_ctb_run_account) and is written once, when the run completes.
    - Status columns are stored as String(50) enum values.

Failure modes:
    - IntegrityError on a second lock insert for the same (group, period);
      the orchestrator turns it into ConsolidationRunExistsForPeriodError.

Audit relevance:
    Terminal runs are never deleted automatically. Step records, warnings
    and the superseding run id explain how every period was consolidated.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from consolidation_kernel.db.base import TrackedBase


class RunStatus(str, Enum):
    """Lifecycle status of a consolidation run.

    Contract: PENDING -> IN_PROGRESS -> COMPLETED | FAILED, and
    PENDING | IN_PROGRESS -> CANCELLED. Terminal states are final.
    """

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.CANCELLED)


class StepName(str, Enum):
    """Pipeline steps, in execution order."""

    COLLECTING = "collecting"
    TRANSLATING = "translating"
    ELIMINATING = "eliminating"
    AGGREGATING = "aggregating"
    VALIDATING = "validating"


class StepStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class ConsolidationRunModel(TrackedBase):
    """
    One consolidation attempt for a group and period.

    Guarantees:
        - ``steps`` holds one record per StepName, in pipeline order.
        - ``cancel_requested`` is set by cancel() and read by the
          orchestrator at every step boundary.
        - ``superseded_by_run_id`` is set when a forced regeneration
          cancelled this run.
    """

    __tablename__ = "consolidation_runs"

    __table_args__ = (
        Index("idx_consolidation_run_group_period", "group_id", "period_ref"),
        Index("idx_consolidation_run_status", "status"),
        Index("idx_consolidation_run_as_of", "group_id", "as_of_date"),
    )

    group_id: Mapped[UUID] = mapped_column(nullable=False)
    period_ref: Mapped[str] = mapped_column(String(50), nullable=False)
    as_of_date: Mapped[date] = mapped_column(Date, nullable=False)
    initiated_by: Mapped[UUID] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default=RunStatus.PENDING.value)
    reporting_currency: Mapped[str] = mapped_column(String(3), nullable=False)

    # Flags
    skip_validation: Mapped[bool] = mapped_column(Boolean, default=False)
    continue_on_warnings: Mapped[bool] = mapped_column(Boolean, default=False)
    include_equity_method_investments: Mapped[bool] = mapped_column(Boolean, default=False)
    force_regeneration: Mapped[bool] = mapped_column(Boolean, default=False)

    # Progress
    current_step: Mapped[str | None] = mapped_column(String(50), nullable=True)
    steps: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    warnings: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    cancel_requested: Mapped[bool] = mapped_column(Boolean, default=False)
    superseded_by_run_id: Mapped[UUID | None] = mapped_column(nullable=True)

    started_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    failed_step: Mapped[str | None] = mapped_column(String(50), nullable=True)
    error_code: Mapped[str | None] = mapped_column(String(100), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Results
    total_eliminations: Mapped[Decimal | None] = mapped_column(nullable=True)
    net_income_attributable_to_nci: Mapped[Decimal | None] = mapped_column(nullable=True)
    config_checksum: Mapped[str | None] = mapped_column(String(64), nullable=True)
    # Group, member and rule configuration captured at initiate.
    snapshot: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    trial_balance_lines: Mapped[list["ConsolidatedTrialBalanceLineModel"]] = relationship(
        "ConsolidatedTrialBalanceLineModel",
        back_populates="run",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ConsolidatedTrialBalanceLineModel.account_number",
    )

    def __repr__(self) -> str:
        return f"<ConsolidationRunModel {self.group_id}/{self.period_ref} [{self.status}]>"


class ConsolidationRunLockModel(TrackedBase):
    """
    Per-(group, period) lock serializing run initiation.

    Guarantees:
        - The UNIQUE constraint admits one holder; the holder is the single
          non-terminal run for the period.
    """

    __tablename__ = "consolidation_run_locks"

    __table_args__ = (
        UniqueConstraint("group_id", "period_ref", name="uq_run_lock_group_period"),
    )

    group_id: Mapped[UUID] = mapped_column(nullable=False)
    period_ref: Mapped[str] = mapped_column(String(50), nullable=False)
    run_id: Mapped[UUID] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<ConsolidationRunLockModel {self.group_id}/{self.period_ref} run={self.run_id}>"


class ConsolidatedTrialBalanceLineModel(TrackedBase):
    """One consolidated account of a completed run; amounts signed debit-positive."""

    __tablename__ = "consolidated_trial_balance_lines"

    __table_args__ = (
        UniqueConstraint("run_id", "account_id", name="uq_ctb_run_account"),
        Index("idx_ctb_run", "run_id"),
    )

    run_id: Mapped[UUID] = mapped_column(
        ForeignKey("consolidation_runs.id", ondelete="CASCADE"), nullable=False,
    )
    account_id: Mapped[UUID] = mapped_column(nullable=False)
    account_number: Mapped[str] = mapped_column(String(50), nullable=False)
    account_name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    aggregated_balance: Mapped[Decimal] = mapped_column(nullable=False)
    elimination_amount: Mapped[Decimal] = mapped_column(nullable=False)
    consolidated_balance: Mapped[Decimal] = mapped_column(nullable=False)
    nci_portion: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    run: Mapped[ConsolidationRunModel] = relationship(
        "ConsolidationRunModel", back_populates="trial_balance_lines",
    )

    def __repr__(self) -> str:
        return f"<ConsolidatedTrialBalanceLineModel {self.account_number} {self.consolidated_balance}>"
