"""Rate classes used by the currency translator and rate resolvers."""

from enum import Enum

from consolidation_kernel.domain.accounts import AccountType


class RateClass(str, Enum):
    """Which exchange rate applies to a translated line."""

    CLOSING = "closing"
    AVERAGE = "average"
    HISTORICAL = "historical"


def rate_class_for(account_type: AccountType) -> RateClass:
    """Balance-sheet items at closing, equity layers at historical, flows at average."""
    match account_type:
        case AccountType.ASSET | AccountType.LIABILITY:
            return RateClass.CLOSING
        case AccountType.EQUITY:
            return RateClass.HISTORICAL
        case AccountType.REVENUE | AccountType.EXPENSE:
            return RateClass.AVERAGE
        case _:
            raise ValueError(f"Unknown account type: {account_type}")
