"""
Configuration schema (``consolidation_config.schema``).

Frozen dataclasses produced by the loader. Engines and services receive
these objects; nothing downstream reads YAML or environment variables.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from consolidation_kernel.domain.accounts import AccountCategory, AccountInfo
from consolidation_kernel.domain.currency import CurrencyRegistry


@dataclass(frozen=True)
class GroupAccountDef:
    """A group-level account that no member trial balance owns."""

    account_id: UUID
    account_number: str
    name: str
    category: AccountCategory

    def to_account_info(self) -> AccountInfo:
        return AccountInfo(
            account_id=self.account_id,
            account_number=self.account_number,
            name=self.name,
            category=self.category,
        )


@dataclass(frozen=True)
class ConsolidationConfig:
    """
    Engine-wide consolidation settings.

    materiality_threshold:
        Unmatched intercompany transactions with an absolute amount above
        this value block a run unless it continues on warnings.
    balance_tolerance:
        Maximum debit/credit and balance-sheet difference accepted as
        balanced. None means one minor unit of the reporting currency.
    """

    translation_adjustment_account: GroupAccountDef
    equity_method_investment_account: GroupAccountDef
    equity_in_earnings_account: GroupAccountDef
    equity_method_reserve_account: GroupAccountDef
    materiality_threshold: Decimal = Decimal("0.00")
    balance_tolerance: Decimal | None = None
    checksum: str = ""

    def tolerance_for(self, currency: str) -> Decimal:
        if self.balance_tolerance is not None:
            return self.balance_tolerance
        return CurrencyRegistry.get_minor_unit(currency)
