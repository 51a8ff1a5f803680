"""
Accounts -- Account classification shared by every consolidation stage.

Responsibility:
    AccountType decides the translation rate class; AccountCategory decides
    statement placement, selector matching and cash-flow treatment.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Invariants enforced:
    - Every AccountCategory belongs to exactly one AccountType.
    - Balances are signed debit-positive: debit balances are positive,
      credit balances negative. A balanced trial balance sums to zero.
"""

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"

    @property
    def is_income_statement(self) -> bool:
        return self in (AccountType.REVENUE, AccountType.EXPENSE)


class AccountCategory(str, Enum):
    """Statement category of an account."""

    # Assets
    CASH = "cash"
    CURRENT_ASSET = "current_asset"
    NON_CURRENT_ASSET = "non_current_asset"
    FIXED_ASSET = "fixed_asset"
    INTANGIBLE_ASSET = "intangible_asset"
    EQUITY_METHOD_INVESTMENT = "equity_method_investment"
    # Liabilities
    CURRENT_LIABILITY = "current_liability"
    NON_CURRENT_LIABILITY = "non_current_liability"
    # Equity
    CONTRIBUTED_CAPITAL = "contributed_capital"
    RETAINED_EARNINGS = "retained_earnings"
    OTHER_COMPREHENSIVE_INCOME = "other_comprehensive_income"
    TREASURY_STOCK = "treasury_stock"
    # Revenue
    OPERATING_REVENUE = "operating_revenue"
    OTHER_REVENUE = "other_revenue"
    # Expense
    COST_OF_SALES = "cost_of_sales"
    OPERATING_EXPENSE = "operating_expense"
    DEPRECIATION_AMORTIZATION = "depreciation_amortization"
    OTHER_EXPENSE = "other_expense"
    TAX_EXPENSE = "tax_expense"

    @property
    def account_type(self) -> AccountType:
        return _CATEGORY_TYPES[self]


_CATEGORY_TYPES: dict[AccountCategory, AccountType] = {
    AccountCategory.CASH: AccountType.ASSET,
    AccountCategory.CURRENT_ASSET: AccountType.ASSET,
    AccountCategory.NON_CURRENT_ASSET: AccountType.ASSET,
    AccountCategory.FIXED_ASSET: AccountType.ASSET,
    AccountCategory.INTANGIBLE_ASSET: AccountType.ASSET,
    AccountCategory.EQUITY_METHOD_INVESTMENT: AccountType.ASSET,
    AccountCategory.CURRENT_LIABILITY: AccountType.LIABILITY,
    AccountCategory.NON_CURRENT_LIABILITY: AccountType.LIABILITY,
    AccountCategory.CONTRIBUTED_CAPITAL: AccountType.EQUITY,
    AccountCategory.RETAINED_EARNINGS: AccountType.EQUITY,
    AccountCategory.OTHER_COMPREHENSIVE_INCOME: AccountType.EQUITY,
    AccountCategory.TREASURY_STOCK: AccountType.EQUITY,
    AccountCategory.OPERATING_REVENUE: AccountType.REVENUE,
    AccountCategory.OTHER_REVENUE: AccountType.REVENUE,
    AccountCategory.COST_OF_SALES: AccountType.EXPENSE,
    AccountCategory.OPERATING_EXPENSE: AccountType.EXPENSE,
    AccountCategory.DEPRECIATION_AMORTIZATION: AccountType.EXPENSE,
    AccountCategory.OTHER_EXPENSE: AccountType.EXPENSE,
    AccountCategory.TAX_EXPENSE: AccountType.EXPENSE,
}


@dataclass(frozen=True)
class AccountInfo:
    """
    Snapshot of account metadata needed for consolidation.

    Built from member trial-balance lines plus the group-level accounts
    declared in configuration (CTA, equity-method lines).
    """

    account_id: UUID
    account_number: str
    name: str
    category: AccountCategory
    is_active: bool = True

    @property
    def account_type(self) -> AccountType:
        return self.category.account_type
