"""
Pure domain layer.

Immutable value objects and DTOs with no dependency on the ORM, the
database, wall-clock time or I/O.
"""

from consolidation_kernel.domain.accounts import (
    AccountCategory,
    AccountInfo,
    AccountType,
)
from consolidation_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from consolidation_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from consolidation_kernel.domain.group import (
    ConsolidationGroup,
    ConsolidationMember,
    ConsolidationMethod,
    determine_consolidation_method,
    validate_ownership_percentage,
)
from consolidation_kernel.domain.rates import RateClass, rate_class_for
from consolidation_kernel.domain.trial_balance import MemberTrialBalance, TrialBalanceLine
from consolidation_kernel.domain.values import Currency, ExchangeRate, Money

__all__ = [
    "AccountCategory",
    "AccountInfo",
    "AccountType",
    "Clock",
    "ConsolidationGroup",
    "ConsolidationMember",
    "ConsolidationMethod",
    "Currency",
    "CurrencyInfo",
    "CurrencyRegistry",
    "DeterministicClock",
    "ExchangeRate",
    "MemberTrialBalance",
    "Money",
    "RateClass",
    "SystemClock",
    "TrialBalanceLine",
    "determine_consolidation_method",
    "rate_class_for",
    "validate_ownership_percentage",
]
