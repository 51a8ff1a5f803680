"""
Consolidation line types shared by the translation, allocation,
elimination and aggregation engines.

Pure frozen dataclasses. Every amount is a signed, debit-positive Decimal
in the group reporting currency unless stated otherwise.

Architecture: consolidation_engines -- pure domain, zero I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from consolidation_kernel.domain.accounts import AccountCategory, AccountInfo, AccountType
from consolidation_kernel.domain.rates import RateClass


class LineSource(str, Enum):
    """Where a consolidation line came from."""

    MEMBER = "member"
    TRANSLATION_ADJUSTMENT = "translation_adjustment"
    EQUITY_METHOD = "equity_method"
    ROUNDING = "rounding"


class IssueSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


# =============================================================================
# Lines
# =============================================================================


@dataclass(frozen=True)
class ConsolidationLine:
    """One company's balance on one account, ready to be summed."""

    company_id: UUID
    account: AccountInfo
    amount: Decimal
    source: LineSource = LineSource.MEMBER
    intercompany_partner_id: UUID | None = None

    @property
    def account_id(self) -> UUID:
        return self.account.account_id

    @property
    def account_type(self) -> AccountType:
        return self.account.account_type

    @property
    def category(self) -> AccountCategory:
        return self.account.category


@dataclass(frozen=True)
class RateKey:
    """A (pair, date, class) the translator needs from the rate resolver."""

    from_currency: str
    to_currency: str
    on_date: date
    rate_class: RateClass


@dataclass(frozen=True)
class TranslatedTrialBalance:
    """A member trial balance in the reporting currency, CTA included."""

    company_id: UUID
    functional_currency: str
    reporting_currency: str
    lines: tuple[ConsolidationLine, ...]
    rates_applied: tuple[tuple[RateKey, Decimal], ...] = ()
    cta_amount: Decimal = Decimal("0")

    @property
    def is_identity(self) -> bool:
        return self.functional_currency == self.reporting_currency

    @property
    def total(self) -> Decimal:
        return sum((line.amount for line in self.lines), Decimal("0"))

    @property
    def net_income(self) -> Decimal:
        return -sum(
            (l.amount for l in self.lines if l.account_type.is_income_statement),
            Decimal("0"),
        )

    @property
    def equity(self) -> Decimal:
        """Equity excluding current-period income, as a positive credit figure."""
        return -sum(
            (l.amount for l in self.lines if l.account_type == AccountType.EQUITY),
            Decimal("0"),
        )

    @property
    def net_assets(self) -> Decimal:
        return sum(
            (
                l.amount
                for l in self.lines
                if l.account_type in (AccountType.ASSET, AccountType.LIABILITY)
            ),
            Decimal("0"),
        )


@dataclass(frozen=True)
class GroupAccounts:
    """Group-level accounts that no member trial balance owns."""

    translation_adjustment: AccountInfo
    equity_method_investment: AccountInfo
    equity_in_earnings: AccountInfo
    equity_method_reserve: AccountInfo

    def all(self) -> tuple[AccountInfo, ...]:
        return (
            self.translation_adjustment,
            self.equity_method_investment,
            self.equity_in_earnings,
            self.equity_method_reserve,
        )


# =============================================================================
# Validation issues
# =============================================================================


@dataclass(frozen=True)
class ValidationIssue:
    """A problem found while consolidating; errors block unless downgraded."""

    severity: IssueSeverity
    code: str
    message: str
    reference: str | None = None
    details: dict[str, str] = field(default_factory=dict)

    def as_warning(self) -> ValidationIssue:
        return ValidationIssue(
            severity=IssueSeverity.WARNING,
            code=self.code,
            message=self.message,
            reference=self.reference,
            details=dict(self.details),
        )
