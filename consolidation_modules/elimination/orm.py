"""
SQLAlchemy ORM persistence model for elimination rules.

Responsibility
--------------
Persist a group's elimination rules.  Trigger conditions and account
selectors are stored as JSON documents using the serialization in
``consolidation_engines.selectors``.

Architecture position
---------------------
**Modules layer** -- consumed by ``EliminationRuleService`` and by the
orchestrator when it snapshots a group's rules at initiate.

Invariants enforced
-------------------
* Rule names are unique within a group (``uq_elimination_rule_name``).
* Enum fields stored as String(50).
"""

from uuid import UUID

from sqlalchemy import JSON, Boolean, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from consolidation_kernel.db.base import TrackedBase
from consolidation_engines.elimination_types import EliminationRule, EliminationType
from consolidation_engines.selectors import (
    condition_from_dict,
    condition_to_dict,
    selector_from_dict,
    selector_to_dict,
)


class EliminationRuleModel(TrackedBase):
    """
    A consolidation elimination rule.

    Maps to ``consolidation_engines.elimination_types.EliminationRule``.
    """

    __tablename__ = "elimination_rules"

    __table_args__ = (
        UniqueConstraint("group_id", "name", name="uq_elimination_rule_name"),
        Index("idx_elimination_rule_group_priority", "group_id", "priority"),
    )

    group_id: Mapped[UUID] = mapped_column(
        ForeignKey("consolidation_groups.id", ondelete="CASCADE"), nullable=False,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    elimination_type: Mapped[str] = mapped_column(String(50), nullable=False)
    debit_account_id: Mapped[UUID] = mapped_column(nullable=False)
    credit_account_id: Mapped[UUID] = mapped_column(nullable=False)
    trigger_conditions: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    source_accounts: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    target_accounts: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    is_automatic: Mapped[bool] = mapped_column(Boolean, default=True)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    def to_dto(self) -> EliminationRule:
        return EliminationRule(
            id=self.id,
            group_id=self.group_id,
            name=self.name,
            elimination_type=EliminationType(self.elimination_type),
            debit_account_id=self.debit_account_id,
            credit_account_id=self.credit_account_id,
            trigger_conditions=tuple(condition_from_dict(c) for c in self.trigger_conditions),
            source_accounts=tuple(selector_from_dict(s) for s in self.source_accounts),
            target_accounts=tuple(selector_from_dict(s) for s in self.target_accounts),
            is_automatic=self.is_automatic,
            priority=self.priority,
            is_active=self.is_active,
            description=self.description,
        )

    @classmethod
    def from_dto(cls, dto: EliminationRule, created_by_id: UUID) -> "EliminationRuleModel":
        return cls(
            id=dto.id,
            group_id=dto.group_id,
            name=dto.name,
            description=dto.description,
            elimination_type=dto.elimination_type.value,
            debit_account_id=dto.debit_account_id,
            credit_account_id=dto.credit_account_id,
            trigger_conditions=[condition_to_dict(c) for c in dto.trigger_conditions],
            source_accounts=[selector_to_dict(s) for s in dto.source_accounts],
            target_accounts=[selector_to_dict(s) for s in dto.target_accounts],
            is_automatic=dto.is_automatic,
            priority=dto.priority,
            is_active=dto.is_active,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<EliminationRuleModel {self.name} p={self.priority} [{self.elimination_type}]>"
