"""
Tests for GroupService.

Covers:
- Group create / get / list / update / deactivate / delete
- Member add / update / remove with roster invariants
- Consolidation method mismatch warning
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from consolidation_kernel.domain.group import ConsolidationMethod
from consolidation_kernel.exceptions import (
    ConsolidationGroupNotFoundError,
    ConsolidationMemberAlreadyExistsError,
    ConsolidationMemberNotFoundError,
    InvalidCurrencyError,
    InvalidOwnershipPercentageError,
    ParentCompanyAsMemberError,
)


# =============================================================================
# Groups
# =============================================================================


class TestGroups:
    def test_create_and_get(self, group_service, usd_group, parent_id):
        loaded = group_service.get_group(usd_group.id)
        assert loaded == usd_group
        assert loaded.parent_company_id == parent_id
        assert loaded.reporting_currency == "USD"
        assert loaded.default_consolidation_method == ConsolidationMethod.FULL
        assert loaded.is_active

    def test_create_logs_group_created(self, group_service, test_actor_id, captured_logs):
        group = group_service.create_group(
            organization_id=uuid4(),
            name="Logged Holdings",
            reporting_currency="USD",
            parent_company_id=uuid4(),
            actor_id=test_actor_id,
        )
        created = [r for r in captured_logs() if r["message"] == "consolidation_group_created"]
        assert len(created) == 1
        assert created[0]["group_name"] == "Logged Holdings"
        assert created[0]["group_id"] == str(group.id)
        assert created[0]["logger"] == "consolidation.modules.group.service"

    def test_reporting_currency_normalized(self, group_service, test_actor_id):
        group = group_service.create_group(
            organization_id=uuid4(),
            name="Euro Group",
            reporting_currency="eur",
            parent_company_id=uuid4(),
            actor_id=test_actor_id,
        )
        assert group.reporting_currency == "EUR"

    def test_invalid_currency_rejected(self, group_service, test_actor_id):
        with pytest.raises(InvalidCurrencyError):
            group_service.create_group(
                organization_id=uuid4(),
                name="Bad",
                reporting_currency="QQQ",
                parent_company_id=uuid4(),
                actor_id=test_actor_id,
            )

    def test_unknown_group(self, group_service):
        with pytest.raises(ConsolidationGroupNotFoundError):
            group_service.get_group(uuid4())

    def test_list_groups_excludes_inactive_by_default(self, group_service, test_actor_id):
        org = uuid4()
        active = group_service.create_group(org, "B Group", "USD", uuid4(), test_actor_id)
        inactive = group_service.create_group(org, "A Group", "USD", uuid4(), test_actor_id)
        group_service.deactivate_group(inactive.id, test_actor_id)

        assert [g.id for g in group_service.list_groups(org)] == [active.id]
        assert [g.name for g in group_service.list_groups(org, include_inactive=True)] == [
            "A Group", "B Group",
        ]

    def test_update_group(self, group_service, usd_group, test_actor_id):
        updated = group_service.update_group(
            usd_group.id,
            test_actor_id,
            name="Acme Group",
            default_consolidation_method=ConsolidationMethod.PROPORTIONATE,
        )
        assert updated.name == "Acme Group"
        assert updated.default_consolidation_method == ConsolidationMethod.PROPORTIONATE
        assert updated.reporting_currency == "USD"

    def test_delete_group_without_runs(self, group_service, usd_group, subsidiary_id, test_actor_id):
        group_service.add_member(usd_group.id, subsidiary_id, Decimal("100"), test_actor_id)
        group_service.delete_group(usd_group.id)
        with pytest.raises(ConsolidationGroupNotFoundError):
            group_service.get_group(usd_group.id)


# =============================================================================
# Members
# =============================================================================


class TestMembers:
    def test_add_member_uses_group_default_method(
        self, group_service, usd_group, subsidiary_id, test_actor_id,
    ):
        member = group_service.add_member(
            usd_group.id, subsidiary_id, Decimal("80"), test_actor_id,
            acquisition_date=date(2020, 1, 1),
        )
        assert member.consolidation_method == ConsolidationMethod.FULL
        loaded = group_service.get_member(usd_group.id, subsidiary_id)
        assert loaded.ownership_percentage == Decimal("80")
        assert loaded.acquisition_date == date(2020, 1, 1)

    def test_parent_cannot_be_member(self, group_service, usd_group, parent_id, test_actor_id):
        with pytest.raises(ParentCompanyAsMemberError):
            group_service.add_member(usd_group.id, parent_id, Decimal("100"), test_actor_id)

    def test_duplicate_member_rejected(self, group_service, usd_group, subsidiary_id, test_actor_id):
        group_service.add_member(usd_group.id, subsidiary_id, Decimal("60"), test_actor_id)
        with pytest.raises(ConsolidationMemberAlreadyExistsError):
            group_service.add_member(usd_group.id, subsidiary_id, Decimal("70"), test_actor_id)

    @pytest.mark.parametrize("percentage", ["0", "-5", "100.01"])
    def test_ownership_out_of_range(
        self, group_service, usd_group, subsidiary_id, test_actor_id, percentage,
    ):
        with pytest.raises(InvalidOwnershipPercentageError):
            group_service.add_member(
                usd_group.id, subsidiary_id, Decimal(percentage), test_actor_id,
            )
        assert group_service.list_members(usd_group.id) == ()

    def test_method_mismatch_is_logged(
        self, group_service, usd_group, subsidiary_id, test_actor_id, captured_logs,
    ):
        group_service.add_member(
            usd_group.id, subsidiary_id, Decimal("30"), test_actor_id,
            consolidation_method=ConsolidationMethod.FULL,
        )
        warnings = [r for r in captured_logs() if r["message"] == "consolidation_method_mismatch"]
        assert len(warnings) == 1
        assert warnings[0]["expected_method"] == "equity"

    def test_update_member(self, group_service, usd_group, subsidiary_id, test_actor_id):
        group_service.add_member(usd_group.id, subsidiary_id, Decimal("80"), test_actor_id)
        updated = group_service.update_member(
            usd_group.id, subsidiary_id, test_actor_id,
            ownership_percentage=Decimal("40"),
            consolidation_method=ConsolidationMethod.EQUITY,
        )
        assert updated.ownership_percentage == Decimal("40")
        assert updated.consolidation_method == ConsolidationMethod.EQUITY

    def test_remove_member(self, group_service, usd_group, subsidiary_id, test_actor_id):
        group_service.add_member(usd_group.id, subsidiary_id, Decimal("80"), test_actor_id)
        group_service.remove_member(usd_group.id, subsidiary_id)
        with pytest.raises(ConsolidationMemberNotFoundError):
            group_service.get_member(usd_group.id, subsidiary_id)

    def test_list_members(self, group_service, usd_group, test_actor_id):
        companies = {uuid4(), uuid4(), uuid4()}
        for company in companies:
            group_service.add_member(usd_group.id, company, Decimal("100"), test_actor_id)
        assert {m.company_id for m in group_service.list_members(usd_group.id)} == companies
