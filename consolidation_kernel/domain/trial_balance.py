"""
Trial balance DTOs consumed from the trial balance provider.

A member trial balance is expressed in the company's functional currency.
Balances are signed debit-positive, so a balanced trial balance sums to
zero and net income is the negated sum of revenue and expense lines.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID

from consolidation_kernel.domain.accounts import AccountCategory, AccountInfo, AccountType


@dataclass(frozen=True)
class TrialBalanceLine:
    """One account balance of one company."""

    account_id: UUID
    account_number: str
    account_name: str
    category: AccountCategory
    balance: Decimal
    is_active: bool = True
    # Date of the equity layer, translated at the historical rate.
    historical_date: date | None = None
    # Counterparty company for intercompany accounts.
    intercompany_partner_id: UUID | None = None

    @property
    def account_type(self) -> AccountType:
        return self.category.account_type

    def account_info(self) -> AccountInfo:
        return AccountInfo(
            account_id=self.account_id,
            account_number=self.account_number,
            name=self.account_name,
            category=self.category,
            is_active=self.is_active,
        )


@dataclass(frozen=True)
class MemberTrialBalance:
    """Trial balance of a single company as of a date."""

    company_id: UUID
    functional_currency: str
    as_of_date: date
    lines: tuple[TrialBalanceLine, ...] = field(default_factory=tuple)

    @property
    def total(self) -> Decimal:
        """Sum of all signed balances; zero when balanced."""
        return sum((line.balance for line in self.lines), Decimal("0"))

    @property
    def net_income(self) -> Decimal:
        return -sum(
            (line.balance for line in self.lines if line.account_type.is_income_statement),
            Decimal("0"),
        )
