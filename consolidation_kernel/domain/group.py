"""
Group -- Consolidation group and member value objects.

Responsibility:
    Immutable snapshots of a group and its member roster. The orchestrator
    captures these at initiate so a run never sees configuration edits
    made while it executes.

Invariants enforced:
    - ownership_percentage lies in (0, 100].
    - The parent company is implicitly 100% owned, Full method, and is not
      part of the member roster.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from consolidation_kernel.exceptions import InvalidOwnershipPercentageError

HUNDRED = Decimal("100")


class ConsolidationMethod(str, Enum):
    """How a member's balances enter the consolidated trial balance."""

    FULL = "full"
    PROPORTIONATE = "proportionate"
    EQUITY = "equity"


def validate_ownership_percentage(percentage: Decimal) -> Decimal:
    """Return ``percentage`` as Decimal or raise if outside (0, 100]."""
    try:
        value = Decimal(str(percentage))
    except ArithmeticError as e:
        raise InvalidOwnershipPercentageError(str(percentage)) from e
    if not value.is_finite() or value <= 0 or value > HUNDRED:
        raise InvalidOwnershipPercentageError(value)
    return value


def determine_consolidation_method(
    ownership_percentage: Decimal,
    is_vie_primary_beneficiary: bool = False,
) -> ConsolidationMethod | None:
    """
    Ownership-based method: control above 50%, significant influence from
    20% to 50%. Below 20% the investment is carried at cost (None).
    """
    if is_vie_primary_beneficiary or ownership_percentage > Decimal("50"):
        return ConsolidationMethod.FULL
    if ownership_percentage >= Decimal("20"):
        return ConsolidationMethod.EQUITY
    return None


@dataclass(frozen=True)
class ConsolidationGroup:
    """A parent company plus its subsidiaries, reported as one entity."""

    id: UUID
    organization_id: UUID
    name: str
    reporting_currency: str
    default_consolidation_method: ConsolidationMethod
    parent_company_id: UUID
    is_active: bool = True
    description: str | None = None


@dataclass(frozen=True)
class ConsolidationMember:
    """A subsidiary or associate in a group's roster."""

    id: UUID
    group_id: UUID
    company_id: UUID
    ownership_percentage: Decimal
    consolidation_method: ConsolidationMethod
    acquisition_date: date | None = None

    def __post_init__(self) -> None:
        validate_ownership_percentage(self.ownership_percentage)

    @property
    def ownership_fraction(self) -> Decimal:
        return self.ownership_percentage / HUNDRED

    @property
    def nci_fraction(self) -> Decimal:
        return (HUNDRED - self.ownership_percentage) / HUNDRED

    @classmethod
    def for_parent(cls, group: ConsolidationGroup) -> "ConsolidationMember":
        """Synthetic 100% Full membership for the group's parent company."""
        return cls(
            id=group.parent_company_id,
            group_id=group.id,
            company_id=group.parent_company_id,
            ownership_percentage=HUNDRED,
            consolidation_method=ConsolidationMethod.FULL,
        )
