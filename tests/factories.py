"""
Test data builders and deterministic collaborator doubles.

Accounts share one chart across companies: the account id is derived from
the account number, so the same number in two member trial balances
aggregates into one consolidated row.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from uuid import NAMESPACE_OID, UUID, uuid5

from consolidation_kernel.domain.accounts import AccountCategory, AccountInfo
from consolidation_kernel.domain.group import ConsolidationMember, ConsolidationMethod
from consolidation_kernel.domain.rates import RateClass
from consolidation_kernel.domain.trial_balance import MemberTrialBalance, TrialBalanceLine
from consolidation_engines.elimination_types import (
    IntercompanyTransaction,
    IntercompanyTransactionType,
    MatchingStatus,
)

C = AccountCategory

CHART: dict[str, tuple[str, AccountCategory]] = {
    "1000": ("Cash", C.CASH),
    "1100": ("Accounts Receivable", C.CURRENT_ASSET),
    "1150": ("Intercompany Receivable", C.CURRENT_ASSET),
    "1200": ("Inventory", C.CURRENT_ASSET),
    "1500": ("Investment in Subsidiary", C.NON_CURRENT_ASSET),
    "1600": ("Equipment", C.FIXED_ASSET),
    "2000": ("Accounts Payable", C.CURRENT_LIABILITY),
    "2150": ("Intercompany Payable", C.CURRENT_LIABILITY),
    "2500": ("Long-Term Debt", C.NON_CURRENT_LIABILITY),
    "3000": ("Share Capital", C.CONTRIBUTED_CAPITAL),
    "3100": ("Retained Earnings", C.RETAINED_EARNINGS),
    "3200": ("Dividends Declared", C.RETAINED_EARNINGS),
    "4000": ("Revenue", C.OPERATING_REVENUE),
    "4100": ("Intercompany Revenue", C.OPERATING_REVENUE),
    "4200": ("Dividend Income", C.OTHER_REVENUE),
    "5000": ("Cost of Sales", C.COST_OF_SALES),
    "5100": ("Intercompany Cost of Sales", C.COST_OF_SALES),
    "6000": ("Operating Expenses", C.OPERATING_EXPENSE),
    "6100": ("Depreciation", C.DEPRECIATION_AMORTIZATION),
    "6900": ("Interest Expense", C.OTHER_EXPENSE),
    "7000": ("Income Tax", C.TAX_EXPENSE),
}


def account_id(number: str) -> UUID:
    return uuid5(NAMESPACE_OID, f"consolidation-test-account:{number}")


def account(number: str, is_active: bool = True) -> AccountInfo:
    name, category = CHART[number]
    return AccountInfo(
        account_id=account_id(number),
        account_number=number,
        name=name,
        category=category,
        is_active=is_active,
    )


def line(
    number: str,
    balance: Decimal | str | int,
    *,
    partner: UUID | None = None,
    historical_date: date | None = None,
    is_active: bool = True,
) -> TrialBalanceLine:
    """A trial balance line on the shared chart; ``balance`` is debit-positive."""
    name, category = CHART[number]
    return TrialBalanceLine(
        account_id=account_id(number),
        account_number=number,
        account_name=name,
        category=category,
        balance=Decimal(str(balance)),
        is_active=is_active,
        historical_date=historical_date,
        intercompany_partner_id=partner,
    )


def trial_balance(
    company_id: UUID,
    currency: str,
    as_of: date,
    *lines: TrialBalanceLine,
) -> MemberTrialBalance:
    return MemberTrialBalance(
        company_id=company_id,
        functional_currency=currency,
        as_of_date=as_of,
        lines=tuple(lines),
    )


def member(
    group_id: UUID,
    company_id: UUID,
    percentage: Decimal | str = "100",
    method: ConsolidationMethod = ConsolidationMethod.FULL,
    acquisition_date: date | None = None,
) -> ConsolidationMember:
    return ConsolidationMember(
        id=company_id,
        group_id=group_id,
        company_id=company_id,
        ownership_percentage=Decimal(str(percentage)),
        consolidation_method=method,
        acquisition_date=acquisition_date,
    )


def ic_transaction(
    from_company_id: UUID,
    to_company_id: UUID,
    amount: Decimal | str,
    *,
    transaction_type: IntercompanyTransactionType = IntercompanyTransactionType.SALE_PURCHASE,
    status: MatchingStatus = MatchingStatus.MATCHED,
    currency: str = "USD",
    transaction_date: date = date(2024, 3, 15),
    id: UUID | None = None,
) -> IntercompanyTransaction:
    return IntercompanyTransaction(
        id=id or uuid5(NAMESPACE_OID, f"ic:{from_company_id}:{to_company_id}:{amount}:{transaction_type.value}"),
        from_company_id=from_company_id,
        to_company_id=to_company_id,
        transaction_type=transaction_type,
        transaction_date=transaction_date,
        amount=Decimal(str(amount)),
        currency=currency,
        matching_status=status,
    )


# =============================================================================
# Collaborator doubles
# =============================================================================


class FakeRateResolver:
    """
    Rates by (from, to, rate class); a dated entry overrides the undated one.

    Every call is recorded in ``calls``.
    """

    def __init__(self, rates: dict[tuple, Decimal | str] | None = None):
        self._rates: dict[tuple, Decimal] = {
            key: Decimal(str(value)) for key, value in (rates or {}).items()
        }
        self.calls: list[tuple[str, str, date, RateClass]] = []

    def set_rate(self, from_currency: str, to_currency: str, rate_class: RateClass,
                 rate: Decimal | str, on_date: date | None = None) -> None:
        key = (from_currency, to_currency, rate_class) + ((on_date,) if on_date else ())
        self._rates[key] = Decimal(str(rate))

    def clear(self) -> None:
        self._rates.clear()

    def get_rate(self, from_currency, to_currency, on_date, rate_class):
        self.calls.append((from_currency, to_currency, on_date, rate_class))
        dated = self._rates.get((from_currency, to_currency, rate_class, on_date))
        if dated is not None:
            return dated
        return self._rates.get((from_currency, to_currency, rate_class))


class FakeTrialBalanceProvider:
    def __init__(self, trial_balances: Sequence[MemberTrialBalance] = ()):
        self._by_company = {tb.company_id: tb for tb in trial_balances}
        self.calls: list[tuple[UUID, date]] = []

    def add(self, tb: MemberTrialBalance) -> None:
        self._by_company[tb.company_id] = tb

    def get_trial_balance(self, company_id, as_of_date):
        self.calls.append((company_id, as_of_date))
        return self._by_company.get(company_id)


class FakeIntercompanyProvider:
    def __init__(self, transactions: Sequence[IntercompanyTransaction] = ()):
        self.transactions = list(transactions)

    def get_transactions(self, group_id, period_ref):
        return list(self.transactions)


class FailingTrialBalanceProvider:
    """Raises a plain exception, as an unreliable upstream service would."""

    def get_trial_balance(self, company_id, as_of_date):
        raise ConnectionError("trial balance service unavailable")
