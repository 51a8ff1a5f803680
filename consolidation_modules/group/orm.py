"""
SQLAlchemy ORM persistence models for consolidation groups.

Responsibility
--------------
Persist consolidation groups and their member rosters.  The orchestrator
reads these rows once, at initiate, and converts them to the frozen
``ConsolidationGroup`` / ``ConsolidationMember`` snapshots it runs on.

Architecture position
---------------------
**Modules layer** -- ORM models consumed by ``GroupService`` and the
consolidation orchestrator.  Inherits from ``TrackedBase`` (kernel db
layer).

Invariants enforced
-------------------
* (group_id, company_id) is unique: a company appears at most once per
  group (``uq_consolidation_member_company``).
* ``ownership_percentage`` uses ``Decimal`` (Numeric(38,9)) -- NEVER float.
* Enum fields stored as String(50).
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from consolidation_kernel.db.base import TrackedBase
from consolidation_kernel.domain.group import (
    ConsolidationGroup,
    ConsolidationMember,
    ConsolidationMethod,
)


# ---------------------------------------------------------------------------
# ConsolidationGroupModel
# ---------------------------------------------------------------------------


class ConsolidationGroupModel(TrackedBase):
    """
    A parent company and the subsidiaries reported with it.

    Maps to ``consolidation_kernel.domain.group.ConsolidationGroup``.
    """

    __tablename__ = "consolidation_groups"

    __table_args__ = (
        Index("idx_consolidation_group_org", "organization_id"),
        Index("idx_consolidation_group_parent", "parent_company_id"),
    )

    organization_id: Mapped[UUID] = mapped_column(nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    reporting_currency: Mapped[str] = mapped_column(String(3), nullable=False)
    default_consolidation_method: Mapped[str] = mapped_column(
        String(50), nullable=False, default=ConsolidationMethod.FULL.value,
    )
    parent_company_id: Mapped[UUID] = mapped_column(nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    members: Mapped[list["ConsolidationMemberModel"]] = relationship(
        "ConsolidationMemberModel",
        back_populates="group",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def to_dto(self) -> ConsolidationGroup:
        return ConsolidationGroup(
            id=self.id,
            organization_id=self.organization_id,
            name=self.name,
            reporting_currency=self.reporting_currency,
            default_consolidation_method=ConsolidationMethod(self.default_consolidation_method),
            parent_company_id=self.parent_company_id,
            is_active=self.is_active,
            description=self.description,
        )

    @classmethod
    def from_dto(cls, dto: ConsolidationGroup, created_by_id: UUID) -> "ConsolidationGroupModel":
        return cls(
            id=dto.id,
            organization_id=dto.organization_id,
            name=dto.name,
            description=dto.description,
            reporting_currency=dto.reporting_currency,
            default_consolidation_method=dto.default_consolidation_method.value,
            parent_company_id=dto.parent_company_id,
            is_active=dto.is_active,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<ConsolidationGroupModel {self.name} [{self.reporting_currency}]>"


# ---------------------------------------------------------------------------
# ConsolidationMemberModel
# ---------------------------------------------------------------------------


class ConsolidationMemberModel(TrackedBase):
    """
    A subsidiary or associate in a group roster.

    Maps to ``consolidation_kernel.domain.group.ConsolidationMember``.
    """

    __tablename__ = "consolidation_members"

    __table_args__ = (
        UniqueConstraint("group_id", "company_id", name="uq_consolidation_member_company"),
        Index("idx_consolidation_member_group", "group_id"),
    )

    group_id: Mapped[UUID] = mapped_column(
        ForeignKey("consolidation_groups.id", ondelete="CASCADE"), nullable=False,
    )
    company_id: Mapped[UUID] = mapped_column(nullable=False)
    ownership_percentage: Mapped[Decimal] = mapped_column(nullable=False)
    consolidation_method: Mapped[str] = mapped_column(String(50), nullable=False)
    acquisition_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    group: Mapped[ConsolidationGroupModel] = relationship(
        "ConsolidationGroupModel", back_populates="members",
    )

    def to_dto(self) -> ConsolidationMember:
        return ConsolidationMember(
            id=self.id,
            group_id=self.group_id,
            company_id=self.company_id,
            ownership_percentage=self.ownership_percentage,
            consolidation_method=ConsolidationMethod(self.consolidation_method),
            acquisition_date=self.acquisition_date,
        )

    @classmethod
    def from_dto(cls, dto: ConsolidationMember, created_by_id: UUID) -> "ConsolidationMemberModel":
        return cls(
            id=dto.id,
            group_id=dto.group_id,
            company_id=dto.company_id,
            ownership_percentage=dto.ownership_percentage,
            consolidation_method=dto.consolidation_method.value,
            acquisition_date=dto.acquisition_date,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return (
            f"<ConsolidationMemberModel {self.company_id} "
            f"{self.ownership_percentage}% [{self.consolidation_method}]>"
        )
