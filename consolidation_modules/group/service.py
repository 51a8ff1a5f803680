"""
Consolidation Group Service (``consolidation_modules.group.service``).

Responsibility
--------------
Create, update, deactivate and delete consolidation groups, and manage
their member rosters.

Architecture position
---------------------
**Modules layer** -- ``GroupService`` is the sole public entry point for
group and member configuration.  It reads run bookkeeping from the
kernel models to guard group deletion.

Invariants enforced
-------------------
* Each public method owns the transaction boundary (``commit`` on
  success, ``rollback`` on exception).
* Ownership percentage lies in (0, 100].
* A company appears at most once per group, and the parent company is
  never a roster member (it is implicitly 100% Full).
* A group with completed runs can only be deactivated, never deleted.

Failure modes
-------------
* ``ConsolidationGroupNotFoundError`` / ``ConsolidationMemberNotFoundError``
* ``ConsolidationMemberAlreadyExistsError`` / ``ParentCompanyAsMemberError``
* ``InvalidOwnershipPercentageError`` / ``InvalidCurrencyError``
* ``ConsolidationGroupHasCompletedRunsError`` on delete.

Usage::

    service = GroupService(session)
    group = service.create_group(
        organization_id=org_id, name="Acme Group",
        reporting_currency="USD", parent_company_id=parent_id,
        actor_id=actor_id,
    )
    service.add_member(group.id, sub_id, Decimal("80"), actor_id)
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from consolidation_kernel.domain.group import (
    ConsolidationGroup,
    ConsolidationMember,
    ConsolidationMethod,
    determine_consolidation_method,
    validate_ownership_percentage,
)
from consolidation_kernel.domain.values import Currency
from consolidation_kernel.exceptions import (
    ConsolidationGroupHasCompletedRunsError,
    ConsolidationGroupNotFoundError,
    ConsolidationMemberAlreadyExistsError,
    ConsolidationMemberNotFoundError,
    ParentCompanyAsMemberError,
)
from consolidation_kernel.logging_config import get_logger
from consolidation_kernel.models import ConsolidationRunModel, RunStatus
from consolidation_modules.group.orm import ConsolidationGroupModel, ConsolidationMemberModel

logger = get_logger("modules.group.service")


class GroupService:
    """
    Group and member roster management.

    Contract
    --------
    * Every mutating method commits before returning the resulting DTO.
    * Read methods never commit.

    Non-goals
    ---------
    * Does NOT snapshot configuration for runs (the orchestrator does).
    """

    def __init__(self, session: Session):
        self._session = session

    # =========================================================================
    # Groups
    # =========================================================================

    def create_group(
        self,
        organization_id: UUID,
        name: str,
        reporting_currency: str,
        parent_company_id: UUID,
        actor_id: UUID,
        default_consolidation_method: ConsolidationMethod = ConsolidationMethod.FULL,
        description: str | None = None,
    ) -> ConsolidationGroup:
        try:
            group = ConsolidationGroup(
                id=uuid4(),
                organization_id=organization_id,
                name=name,
                reporting_currency=Currency(reporting_currency).code,
                default_consolidation_method=default_consolidation_method,
                parent_company_id=parent_company_id,
                description=description,
            )
            self._session.add(ConsolidationGroupModel.from_dto(group, created_by_id=actor_id))
            self._session.commit()
            logger.info("consolidation_group_created", extra={
                "group_id": str(group.id),
                "group_name": name,
                "reporting_currency": group.reporting_currency,
                "parent_company_id": str(parent_company_id),
            })
            return group
        except Exception:
            self._session.rollback()
            raise

    def get_group(self, group_id: UUID) -> ConsolidationGroup:
        return self._get_group_model(group_id).to_dto()

    def list_groups(self, organization_id: UUID, include_inactive: bool = False) -> tuple[ConsolidationGroup, ...]:
        stmt = select(ConsolidationGroupModel).where(
            ConsolidationGroupModel.organization_id == organization_id,
        )
        if not include_inactive:
            stmt = stmt.where(ConsolidationGroupModel.is_active.is_(True))
        rows = self._session.scalars(stmt.order_by(ConsolidationGroupModel.name)).all()
        return tuple(row.to_dto() for row in rows)

    def update_group(
        self,
        group_id: UUID,
        actor_id: UUID,
        name: str | None = None,
        description: str | None = None,
        default_consolidation_method: ConsolidationMethod | None = None,
    ) -> ConsolidationGroup:
        """Update descriptive fields. The parent and reporting currency are fixed."""
        try:
            model = self._get_group_model(group_id)
            if name is not None:
                model.name = name
            if description is not None:
                model.description = description
            if default_consolidation_method is not None:
                model.default_consolidation_method = default_consolidation_method.value
            model.updated_by_id = actor_id
            self._session.commit()
            logger.info("consolidation_group_updated", extra={"group_id": str(group_id)})
            return model.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def deactivate_group(self, group_id: UUID, actor_id: UUID) -> ConsolidationGroup:
        try:
            model = self._get_group_model(group_id)
            model.is_active = False
            model.updated_by_id = actor_id
            self._session.commit()
            logger.info("consolidation_group_deactivated", extra={"group_id": str(group_id)})
            return model.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def delete_group(self, group_id: UUID) -> None:
        try:
            model = self._get_group_model(group_id)
            completed = self._session.scalar(
                select(func.count()).select_from(ConsolidationRunModel).where(
                    ConsolidationRunModel.group_id == group_id,
                    ConsolidationRunModel.status == RunStatus.COMPLETED.value,
                )
            ) or 0
            if completed:
                raise ConsolidationGroupHasCompletedRunsError(str(group_id), completed)
            self._session.delete(model)
            self._session.commit()
            logger.info("consolidation_group_deleted", extra={"group_id": str(group_id)})
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Members
    # =========================================================================

    def add_member(
        self,
        group_id: UUID,
        company_id: UUID,
        ownership_percentage: Decimal,
        actor_id: UUID,
        consolidation_method: ConsolidationMethod | None = None,
        acquisition_date: date | None = None,
        is_vie_primary_beneficiary: bool = False,
    ) -> ConsolidationMember:
        """
        Add a company to the roster.

        When ``consolidation_method`` is omitted the group's default method
        is used.  A method that disagrees with the ownership-based
        determination is accepted but logged.
        """
        try:
            group = self._get_group_model(group_id)
            if company_id == group.parent_company_id:
                raise ParentCompanyAsMemberError(str(group_id), str(company_id))
            if self._find_member_model(group_id, company_id) is not None:
                raise ConsolidationMemberAlreadyExistsError(str(group_id), str(company_id))

            percentage = validate_ownership_percentage(ownership_percentage)
            method = consolidation_method or ConsolidationMethod(group.default_consolidation_method)
            self._warn_on_method_mismatch(
                group_id, company_id, percentage, method, is_vie_primary_beneficiary,
            )

            member = ConsolidationMember(
                id=uuid4(),
                group_id=group_id,
                company_id=company_id,
                ownership_percentage=percentage,
                consolidation_method=method,
                acquisition_date=acquisition_date,
            )
            self._session.add(ConsolidationMemberModel.from_dto(member, created_by_id=actor_id))
            try:
                self._session.flush()
            except IntegrityError as e:
                raise ConsolidationMemberAlreadyExistsError(str(group_id), str(company_id)) from e
            self._session.commit()
            logger.info("consolidation_member_added", extra={
                "group_id": str(group_id),
                "company_id": str(company_id),
                "ownership_percentage": str(percentage),
                "consolidation_method": method.value,
            })
            return member
        except Exception:
            self._session.rollback()
            raise

    def update_member(
        self,
        group_id: UUID,
        company_id: UUID,
        actor_id: UUID,
        ownership_percentage: Decimal | None = None,
        consolidation_method: ConsolidationMethod | None = None,
        acquisition_date: date | None = None,
    ) -> ConsolidationMember:
        try:
            model = self._get_member_model(group_id, company_id)
            if ownership_percentage is not None:
                model.ownership_percentage = validate_ownership_percentage(ownership_percentage)
            if consolidation_method is not None:
                model.consolidation_method = consolidation_method.value
            if acquisition_date is not None:
                model.acquisition_date = acquisition_date
            model.updated_by_id = actor_id
            member = model.to_dto()
            self._warn_on_method_mismatch(
                group_id, company_id, member.ownership_percentage, member.consolidation_method,
            )
            self._session.commit()
            logger.info("consolidation_member_updated", extra={
                "group_id": str(group_id),
                "company_id": str(company_id),
                "ownership_percentage": str(member.ownership_percentage),
                "consolidation_method": member.consolidation_method.value,
            })
            return member
        except Exception:
            self._session.rollback()
            raise

    def remove_member(self, group_id: UUID, company_id: UUID) -> None:
        try:
            model = self._get_member_model(group_id, company_id)
            self._session.delete(model)
            self._session.commit()
            logger.info("consolidation_member_removed", extra={
                "group_id": str(group_id),
                "company_id": str(company_id),
            })
        except Exception:
            self._session.rollback()
            raise

    def get_member(self, group_id: UUID, company_id: UUID) -> ConsolidationMember:
        return self._get_member_model(group_id, company_id).to_dto()

    def list_members(self, group_id: UUID) -> tuple[ConsolidationMember, ...]:
        self._get_group_model(group_id)
        rows = self._session.scalars(
            select(ConsolidationMemberModel)
            .where(ConsolidationMemberModel.group_id == group_id)
            .order_by(ConsolidationMemberModel.company_id)
        ).all()
        return tuple(row.to_dto() for row in rows)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _get_group_model(self, group_id: UUID) -> ConsolidationGroupModel:
        model = self._session.get(ConsolidationGroupModel, group_id)
        if model is None:
            raise ConsolidationGroupNotFoundError(str(group_id))
        return model

    def _find_member_model(self, group_id: UUID, company_id: UUID) -> ConsolidationMemberModel | None:
        return self._session.scalars(
            select(ConsolidationMemberModel).where(
                ConsolidationMemberModel.group_id == group_id,
                ConsolidationMemberModel.company_id == company_id,
            )
        ).first()

    def _get_member_model(self, group_id: UUID, company_id: UUID) -> ConsolidationMemberModel:
        model = self._find_member_model(group_id, company_id)
        if model is None:
            raise ConsolidationMemberNotFoundError(str(group_id), str(company_id))
        return model

    def _warn_on_method_mismatch(
        self,
        group_id: UUID,
        company_id: UUID,
        ownership_percentage: Decimal,
        method: ConsolidationMethod,
        is_vie_primary_beneficiary: bool = False,
    ) -> None:
        expected = determine_consolidation_method(ownership_percentage, is_vie_primary_beneficiary)
        if expected != method:
            logger.warning("consolidation_method_mismatch", extra={
                "group_id": str(group_id),
                "company_id": str(company_id),
                "ownership_percentage": str(ownership_percentage),
                "consolidation_method": method.value,
                "expected_method": expected.value if expected else None,
            })
