"""
Tests for group and member value objects.

Covers:
- Ownership percentage bounds (0, 100]
- Ownership-based consolidation method determination
- NCI fraction
- Synthetic parent membership
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from consolidation_kernel.domain.group import (
    ConsolidationGroup,
    ConsolidationMember,
    ConsolidationMethod,
    determine_consolidation_method,
    validate_ownership_percentage,
)
from consolidation_kernel.exceptions import InvalidOwnershipPercentageError


class TestOwnershipPercentage:
    @pytest.mark.parametrize("value", ["0.0001", "50", "100"])
    def test_accepts_values_in_range(self, value):
        assert validate_ownership_percentage(Decimal(value)) == Decimal(value)

    @pytest.mark.parametrize("value", ["0", "-5", "100.01", "NaN"])
    def test_rejects_values_out_of_range(self, value):
        with pytest.raises(InvalidOwnershipPercentageError) as exc_info:
            validate_ownership_percentage(Decimal(value))
        assert exc_info.value.code == "INVALID_OWNERSHIP_PERCENTAGE"

    def test_member_validates_on_construction(self):
        with pytest.raises(InvalidOwnershipPercentageError):
            ConsolidationMember(
                id=uuid4(),
                group_id=uuid4(),
                company_id=uuid4(),
                ownership_percentage=Decimal("0"),
                consolidation_method=ConsolidationMethod.FULL,
            )


class TestDetermineConsolidationMethod:
    def test_control_is_full(self):
        assert determine_consolidation_method(Decimal("50.01")) == ConsolidationMethod.FULL

    def test_exactly_fifty_is_equity(self):
        assert determine_consolidation_method(Decimal("50")) == ConsolidationMethod.EQUITY

    def test_significant_influence_is_equity(self):
        assert determine_consolidation_method(Decimal("20")) == ConsolidationMethod.EQUITY

    def test_below_twenty_is_cost(self):
        assert determine_consolidation_method(Decimal("19.99")) is None

    def test_vie_primary_beneficiary_is_full(self):
        assert (
            determine_consolidation_method(Decimal("10"), is_vie_primary_beneficiary=True)
            == ConsolidationMethod.FULL
        )


class TestMemberFractions:
    def test_nci_fraction(self):
        member = ConsolidationMember(
            id=uuid4(),
            group_id=uuid4(),
            company_id=uuid4(),
            ownership_percentage=Decimal("80"),
            consolidation_method=ConsolidationMethod.FULL,
        )
        assert member.ownership_fraction == Decimal("0.8")
        assert member.nci_fraction == Decimal("0.2")

    def test_parent_membership_is_full_and_wholly_owned(self):
        group = ConsolidationGroup(
            id=uuid4(),
            organization_id=uuid4(),
            name="Holdings",
            reporting_currency="USD",
            default_consolidation_method=ConsolidationMethod.FULL,
            parent_company_id=uuid4(),
        )
        parent = ConsolidationMember.for_parent(group)
        assert parent.company_id == group.parent_company_id
        assert parent.ownership_percentage == Decimal("100")
        assert parent.consolidation_method == ConsolidationMethod.FULL
        assert parent.nci_fraction == 0
