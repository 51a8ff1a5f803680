"""
Reporting Configuration Schema.

Statement classification is driven by account category; this config
only controls presentation and the balance tolerance.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Self

from consolidation_kernel.domain.accounts import AccountCategory
from consolidation_kernel.logging_config import get_logger

logger = get_logger("modules.reporting.config")


@dataclass(frozen=True)
class ReportingConfig:
    """
    Configuration schema for consolidated reporting.

    balance_tolerance:
        Largest identity difference accepted. None means one minor unit of
        the run's reporting currency.
    """

    balance_tolerance: Decimal | None = None

    # Whether to include accounts with zero consolidated balance
    include_zero_balances: bool = False

    # Expense categories added back as non-cash in the cash flow statement
    non_cash_categories: tuple[AccountCategory, ...] = (
        AccountCategory.DEPRECIATION_AMORTIZATION,
    )

    # Equity accounts whose name contains one of these markers are dividends
    dividend_name_markers: tuple[str, ...] = field(default=("dividend",))

    def __post_init__(self):
        if self.balance_tolerance is not None and self.balance_tolerance < 0:
            raise ValueError("balance_tolerance cannot be negative")

    def is_dividend_account(self, name: str) -> bool:
        lowered = name.lower()
        return any(marker in lowered for marker in self.dividend_name_markers)

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with standard defaults."""
        logger.info("reporting_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary."""
        data = dict(data)
        if data.get("balance_tolerance") is not None:
            data["balance_tolerance"] = Decimal(str(data["balance_tolerance"]))
        if "non_cash_categories" in data:
            data["non_cash_categories"] = tuple(
                AccountCategory(c) for c in data["non_cash_categories"]
            )
        if "dividend_name_markers" in data:
            data["dividend_name_markers"] = tuple(data["dividend_name_markers"])
        logger.info(
            "reporting_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)
