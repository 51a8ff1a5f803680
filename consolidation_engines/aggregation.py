"""
Module: consolidation_engines.aggregation
Responsibility:
    Sum the member contributions per account, apply the elimination
    entries and attach the parent / NCI split, producing the consolidated
    trial balance for a run.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - consolidated_balance = aggregated_balance + elimination_amount on
      every row; parent_portion + nci_portion = consolidated_balance.
    - net_income_attributable_to_parent + net_income_attributable_to_nci
      equals consolidated_net_income exactly (parent is the difference).
    - Rows are ordered by account number, then account id.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from consolidation_kernel.domain.accounts import AccountCategory, AccountInfo, AccountType
from consolidation_kernel.logging_config import get_logger
from consolidation_engines.elimination_types import EliminationEntry
from consolidation_engines.minority_interest import AllocationResult, attribute_net_income
from consolidation_engines.tracer import traced_engine

logger = get_logger("engines.aggregation")

ZERO = Decimal("0")


@dataclass(frozen=True)
class ConsolidatedTrialBalanceLine:
    """One consolidated account; all amounts signed debit-positive."""

    account_id: UUID
    account_number: str
    account_name: str
    category: AccountCategory
    aggregated_balance: Decimal
    elimination_amount: Decimal
    consolidated_balance: Decimal
    nci_portion: Decimal = ZERO

    @property
    def account_type(self) -> AccountType:
        return self.category.account_type

    @property
    def parent_portion(self) -> Decimal:
        return self.consolidated_balance - self.nci_portion

    @property
    def debit(self) -> Decimal:
        return self.consolidated_balance if self.consolidated_balance > 0 else ZERO

    @property
    def credit(self) -> Decimal:
        return -self.consolidated_balance if self.consolidated_balance < 0 else ZERO


@dataclass(frozen=True)
class ConsolidatedTrialBalance:
    """Run-scoped consolidated trial balance in the reporting currency."""

    reporting_currency: str
    as_of_date: date
    lines: tuple[ConsolidatedTrialBalanceLine, ...]
    total_eliminations: Decimal = ZERO
    net_income_attributable_to_nci: Decimal = ZERO

    @property
    def total_debits(self) -> Decimal:
        return sum((l.debit for l in self.lines), ZERO)

    @property
    def total_credits(self) -> Decimal:
        return sum((l.credit for l in self.lines), ZERO)

    @property
    def difference(self) -> Decimal:
        return self.total_debits - self.total_credits

    def is_balanced(self, tolerance: Decimal = ZERO) -> bool:
        return abs(self.difference) <= tolerance

    def balance_for(self, account_type: AccountType) -> Decimal:
        """Signed debit-positive sum of consolidated balances of one type."""
        return sum(
            (l.consolidated_balance for l in self.lines if l.account_type == account_type),
            ZERO,
        )

    @property
    def consolidated_net_income(self) -> Decimal:
        return -(self.balance_for(AccountType.REVENUE) + self.balance_for(AccountType.EXPENSE))

    @property
    def net_income_attributable_to_parent(self) -> Decimal:
        parent, _ = attribute_net_income(
            self.consolidated_net_income, self.net_income_attributable_to_nci
        )
        return parent

    @property
    def total_nci(self) -> Decimal:
        """NCI equity including the NCI share of current net income (positive credit)."""
        return -sum(
            (
                l.nci_portion for l in self.lines
                if l.account_type in (AccountType.EQUITY, AccountType.REVENUE, AccountType.EXPENSE)
            ),
            ZERO,
        )

    def line_for(self, account_id: UUID) -> ConsolidatedTrialBalanceLine | None:
        for line in self.lines:
            if line.account_id == account_id:
                return line
        return None


class ConsolidationAggregator:
    """Builds the consolidated trial balance from allocated contributions."""

    @traced_engine(
        "aggregation", "1.0",
        fingerprint_fields=("allocation", "eliminations", "reporting_currency", "as_of_date"),
    )
    def aggregate(
        self,
        allocation: AllocationResult,
        eliminations: Sequence[EliminationEntry],
        accounts: Mapping[UUID, AccountInfo],
        reporting_currency: str,
        as_of_date: date,
    ) -> ConsolidatedTrialBalance:
        aggregated: dict[UUID, Decimal] = {}
        eliminated: dict[UUID, Decimal] = {}

        for line in allocation.lines:
            aggregated[line.account_id] = aggregated.get(line.account_id, ZERO) + line.amount

        for entry in eliminations:
            for elim_line in entry.lines:
                eliminated[elim_line.account_id] = (
                    eliminated.get(elim_line.account_id, ZERO)
                    + elim_line.debit
                    - elim_line.credit
                )

        rows: list[ConsolidatedTrialBalanceLine] = []
        for account_id in set(aggregated) | set(eliminated):
            account = accounts[account_id]
            agg = aggregated.get(account_id, ZERO)
            elim = eliminated.get(account_id, ZERO)
            rows.append(
                ConsolidatedTrialBalanceLine(
                    account_id=account_id,
                    account_number=account.account_number,
                    account_name=account.name,
                    category=account.category,
                    aggregated_balance=agg,
                    elimination_amount=elim,
                    consolidated_balance=agg + elim,
                    nci_portion=allocation.nci_by_account.get(account_id, ZERO),
                )
            )
        rows.sort(key=lambda r: (r.account_number, str(r.account_id)))

        tb = ConsolidatedTrialBalance(
            reporting_currency=reporting_currency,
            as_of_date=as_of_date,
            lines=tuple(rows),
            total_eliminations=sum((e.amount.amount for e in eliminations), ZERO),
            net_income_attributable_to_nci=allocation.net_income_attributable_to_nci,
        )

        logger.info(
            "consolidated_trial_balance_built",
            extra={
                "account_count": len(rows),
                "total_debits": str(tb.total_debits),
                "total_credits": str(tb.total_credits),
                "consolidated_net_income": str(tb.consolidated_net_income),
            },
        )
        return tb
