"""
Module: consolidation_engines
Responsibility:
    Package entrypoint that re-exports the pure consolidation engines.
    This is the canonical import surface for consolidation_modules and
    consolidation_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import consolidation_kernel (domain, exceptions, logging) and
    sibling engine modules. MUST NOT import consolidation_services or
    consolidation_modules.

Invariants enforced:
    - Engines never read the clock or call collaborators; rates, trial
      balances and transactions are passed in.
    - Decimal-only arithmetic; amounts are rounded to the reporting
      currency minor unit with ROUND_HALF_UP.
    - Identical inputs always produce identical outputs.

Audit relevance:
    Every engine invocation is traced via ``@traced_engine`` and emits a
    CONSOLIDATION_ENGINE_TRACE record with an input fingerprint.
"""

from consolidation_engines.aggregation import (
    ConsolidatedTrialBalance,
    ConsolidatedTrialBalanceLine,
    ConsolidationAggregator,
)
from consolidation_engines.elimination import EliminationRuleEngine
from consolidation_engines.elimination_types import (
    AccountByCategory,
    AccountById,
    AccountByRange,
    AccountSelector,
    EliminationEntry,
    EliminationResult,
    EliminationRule,
    EliminationType,
    IntercompanyTransaction,
    IntercompanyTransactionType,
    MatchingStatus,
    SkippedRule,
    TriggerCondition,
)
from consolidation_engines.minority_interest import (
    AllocationResult,
    MemberContribution,
    MinorityInterestAllocator,
    attribute_net_income,
    cumulative_round,
)
from consolidation_engines.tracer import traced_engine
from consolidation_engines.translation import CurrencyTranslator
from consolidation_engines.types import (
    ConsolidationLine,
    GroupAccounts,
    IssueSeverity,
    LineSource,
    RateKey,
    TranslatedTrialBalance,
    ValidationIssue,
)
from consolidation_engines.validation import ConsolidationValidator, balance_sheet_totals

__all__ = [
    "AccountByCategory",
    "AccountById",
    "AccountByRange",
    "AccountSelector",
    "AllocationResult",
    "ConsolidatedTrialBalance",
    "ConsolidatedTrialBalanceLine",
    "ConsolidationAggregator",
    "ConsolidationLine",
    "ConsolidationValidator",
    "CurrencyTranslator",
    "EliminationEntry",
    "EliminationResult",
    "EliminationRule",
    "EliminationRuleEngine",
    "EliminationType",
    "GroupAccounts",
    "IntercompanyTransaction",
    "IntercompanyTransactionType",
    "IssueSeverity",
    "LineSource",
    "MatchingStatus",
    "MemberContribution",
    "MinorityInterestAllocator",
    "RateKey",
    "SkippedRule",
    "TranslatedTrialBalance",
    "TriggerCondition",
    "ValidationIssue",
    "attribute_net_income",
    "balance_sheet_totals",
    "cumulative_round",
    "traced_engine",
]
