"""
Elimination domain types.

Pure frozen dataclasses for elimination rules, account selectors,
intercompany transactions and elimination results. Used by the
EliminationRuleEngine (pure) and by the elimination rule service
(imperative shell) that persists rules.

Account selectors are a closed set of variants:
    AccountById | AccountByRange | AccountByCategory
Every algorithm over selectors uses one exhaustive ``match``.

Architecture: consolidation_engines -- pure domain, zero I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from consolidation_kernel.domain.accounts import AccountCategory
from consolidation_kernel.domain.values import Money
from consolidation_kernel.exceptions import SameCompanyIntercompanyError
from consolidation_engines.types import ValidationIssue


class IntercompanyTransactionType(str, Enum):
    SALE_PURCHASE = "sale_purchase"
    LOAN = "loan"
    MANAGEMENT_FEE = "management_fee"
    DIVIDEND = "dividend"
    CAPITAL_CONTRIBUTION = "capital_contribution"
    COST_ALLOCATION = "cost_allocation"
    ROYALTY = "royalty"


class MatchingStatus(str, Enum):
    UNMATCHED = "unmatched"
    PARTIALLY_MATCHED = "partially_matched"
    MATCHED = "matched"
    VARIANCE_APPROVED = "variance_approved"


class EliminationType(str, Enum):
    """What an elimination rule removes from the consolidated totals."""

    INTERCOMPANY_RECEIVABLE_PAYABLE = "intercompany_receivable_payable"
    INTERCOMPANY_REVENUE_EXPENSE = "intercompany_revenue_expense"
    INTERCOMPANY_SALES = "intercompany_sales"
    INTERCOMPANY_DIVIDEND = "intercompany_dividend"
    INTERCOMPANY_INVESTMENT = "intercompany_investment"
    UNREALIZED_PROFIT_INVENTORY = "unrealized_profit_inventory"
    UNREALIZED_PROFIT_FIXED_ASSETS = "unrealized_profit_fixed_assets"

    @property
    def requires_group_partner(self) -> bool:
        """Only balances held against another group company count."""
        match self:
            case (
                EliminationType.INTERCOMPANY_RECEIVABLE_PAYABLE
                | EliminationType.INTERCOMPANY_REVENUE_EXPENSE
                | EliminationType.INTERCOMPANY_SALES
                | EliminationType.INTERCOMPANY_DIVIDEND
            ):
                return True
            case (
                EliminationType.INTERCOMPANY_INVESTMENT
                | EliminationType.UNREALIZED_PROFIT_INVENTORY
                | EliminationType.UNREALIZED_PROFIT_FIXED_ASSETS
            ):
                return False
            case _:
                raise ValueError(f"Unknown elimination type: {self}")

    @property
    def transaction_types(self) -> frozenset[IntercompanyTransactionType]:
        """Intercompany transaction types this elimination removes."""
        T = IntercompanyTransactionType
        match self:
            case EliminationType.INTERCOMPANY_RECEIVABLE_PAYABLE:
                return frozenset({T.SALE_PURCHASE, T.LOAN, T.MANAGEMENT_FEE,
                                  T.COST_ALLOCATION, T.ROYALTY})
            case EliminationType.INTERCOMPANY_REVENUE_EXPENSE:
                return frozenset({T.MANAGEMENT_FEE, T.COST_ALLOCATION, T.ROYALTY, T.LOAN})
            case (
                EliminationType.INTERCOMPANY_SALES
                | EliminationType.UNREALIZED_PROFIT_INVENTORY
                | EliminationType.UNREALIZED_PROFIT_FIXED_ASSETS
            ):
                return frozenset({T.SALE_PURCHASE})
            case EliminationType.INTERCOMPANY_DIVIDEND:
                return frozenset({T.DIVIDEND})
            case EliminationType.INTERCOMPANY_INVESTMENT:
                return frozenset({T.CAPITAL_CONTRIBUTION})
            case _:
                raise ValueError(f"Unknown elimination type: {self}")


# =============================================================================
# Account selectors
# =============================================================================


@dataclass(frozen=True)
class AccountById:
    account_id: UUID


@dataclass(frozen=True)
class AccountByRange:
    """Inclusive range over account numbers, numeric when every number is all digits."""

    from_number: str
    to_number: str


@dataclass(frozen=True)
class AccountByCategory:
    category: AccountCategory


AccountSelector = AccountById | AccountByRange | AccountByCategory


# =============================================================================
# Rules
# =============================================================================


@dataclass(frozen=True)
class TriggerCondition:
    """Matches when every selector resolves to a balance of at least minimum_amount."""

    description: str
    source_accounts: tuple[AccountSelector, ...]
    minimum_amount: Decimal | None = None


@dataclass(frozen=True)
class EliminationRule:
    """A group's rule for removing one kind of intercompany balance."""

    id: UUID
    group_id: UUID
    name: str
    elimination_type: EliminationType
    debit_account_id: UUID
    credit_account_id: UUID
    trigger_conditions: tuple[TriggerCondition, ...] = ()
    source_accounts: tuple[AccountSelector, ...] = ()
    target_accounts: tuple[AccountSelector, ...] = ()
    is_automatic: bool = True
    priority: int = 100
    is_active: bool = True
    description: str | None = None

    @property
    def sort_key(self) -> tuple[int, str]:
        """Ascending priority, ties broken by rule id."""
        return (self.priority, str(self.id))


# =============================================================================
# Intercompany transactions
# =============================================================================


@dataclass(frozen=True)
class IntercompanyTransaction:
    """A transaction between two group companies for the period."""

    id: UUID
    from_company_id: UUID
    to_company_id: UUID
    transaction_type: IntercompanyTransactionType
    transaction_date: date
    amount: Decimal
    currency: str
    matching_status: MatchingStatus = MatchingStatus.UNMATCHED
    from_journal_entry_id: UUID | None = None
    to_journal_entry_id: UUID | None = None
    variance_amount: Decimal | None = None
    variance_explanation: str | None = None
    description: str | None = None

    def __post_init__(self) -> None:
        if self.from_company_id == self.to_company_id:
            raise SameCompanyIntercompanyError(str(self.from_company_id))


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class EliminationLine:
    account_id: UUID
    debit: Decimal
    credit: Decimal


@dataclass(frozen=True)
class EliminationEntry:
    """A two-line elimination posting produced by one rule."""

    rule_id: UUID
    rule_name: str
    elimination_type: EliminationType
    priority: int
    debit_account_id: UUID
    credit_account_id: UUID
    amount: Money
    is_automatic: bool = True
    matched_line_count: int = 0
    transaction_ids: tuple[UUID, ...] = ()

    @property
    def lines(self) -> tuple[EliminationLine, EliminationLine]:
        zero = Decimal("0")
        return (
            EliminationLine(self.debit_account_id, debit=self.amount.amount, credit=zero),
            EliminationLine(self.credit_account_id, debit=zero, credit=self.amount.amount),
        )

    @property
    def is_balanced(self) -> bool:
        debit_line, credit_line = self.lines
        return debit_line.debit == credit_line.credit


@dataclass(frozen=True)
class SkippedRule:
    rule_id: UUID
    rule_name: str
    reason: str


@dataclass(frozen=True)
class EliminationResult:
    """Applied entries are in evaluation order (ascending priority)."""

    applied: tuple[EliminationEntry, ...]
    pending_manual: tuple[EliminationEntry, ...] = ()
    skipped: tuple[SkippedRule, ...] = ()
    issues: tuple[ValidationIssue, ...] = ()

    @property
    def total_eliminated(self) -> Decimal:
        return sum((e.amount.amount for e in self.applied), Decimal("0"))
