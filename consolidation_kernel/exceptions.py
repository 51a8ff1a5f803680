"""
Typed Exception Hierarchy for the Consolidation Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

A consolidation run touches many companies, currencies and rules. When it
fails, an operator needs to know *which* step, rule, account or currency pair
caused it in order to re-initiate correctly. Parsing message strings for that
is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (step, rule id, account id, pair)

Example:
    try:
        orchestrator.initiate(group_id, "2024-12", as_of, actor_id, flags)
    except ConsolidationRunExistsForPeriodError as e:
        api_response(code=e.code, existing_run=e.existing_run_id)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from ConsolidationKernelError. The four categories
map onto how a failure is surfaced:

    ConsolidationKernelError (base)
    |
    +-- ConfigurationError          rejected before any run step executes
    |   +-- ConsolidationGroupNotFoundError
    |   +-- ConsolidationGroupInactiveError
    |   +-- ConsolidationGroupHasCompletedRunsError
    |   +-- ConsolidationMemberNotFoundError
    |   +-- ConsolidationMemberAlreadyExistsError
    |   +-- ParentCompanyAsMemberError
    |   +-- InvalidOwnershipPercentageError
    |   +-- EliminationRuleNotFoundError
    |   +-- InvalidEliminationRuleError
    |   +-- ConsolidationRunNotFoundError
    |   +-- InvalidConsolidationConfigError
    |
    +-- InputDataError              recorded against the failing run step
    |   +-- ExchangeRateUnavailableError
    |   +-- HistoricalRateDateMissingError
    |   +-- TrialBalanceMissingError
    |   +-- MemberTrialBalanceNotBalancedError
    |   +-- UnmatchedIntercompanyTransactionError
    |   +-- SameCompanyIntercompanyError
    |   +-- CurrencyError
    |       +-- InvalidCurrencyError
    |       +-- CurrencyMismatchError
    |
    +-- InvariantViolationError     always fatal to report generation
    |   +-- ConsolidatedTrialBalanceNotBalancedError
    |   +-- ConsolidatedBalanceSheetNotBalancedError
    |   +-- ConsolidatedIncomeStatementNotBalancedError
    |   +-- NetIncomeAttributionError
    |   +-- UnbalancedEliminationError
    |
    +-- LifecycleError              wrong state for the requested operation
        +-- ConsolidationRunExistsForPeriodError
        +-- ConsolidationRunCannotBeCancelledError
        +-- ConsolidationRunCannotBeDeletedError
        +-- ConsolidationRunNotCompletedError
        +-- ConsolidatedTrialBalanceNotAvailableError
        +-- InvalidRunTransitionError
        +-- InvalidStepTransitionError

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Input-data errors raised by engines are caught by the orchestrator,
   recorded on the failing step (code + message) and the run is moved to
   Failed. They never escape ``initiate``.

2. Configuration and lifecycle errors propagate to the caller unchanged.

3. Invariant violations raised during report assembly propagate; a report
   is never emitted for an unbalanced trial balance.

===============================================================================
"""

from datetime import date
from decimal import Decimal


class ConsolidationKernelError(Exception):
    """
    Base exception for all consolidation errors.

    All subclasses must have a `code` class attribute
    for machine-readable error identification.
    """

    code: str = "CONSOLIDATION_ERROR"


# =============================================================================
# Configuration errors
# =============================================================================


class ConfigurationError(ConsolidationKernelError):
    """Base exception for invalid or missing configuration."""

    code: str = "CONFIGURATION_ERROR"


class ConsolidationGroupNotFoundError(ConfigurationError):
    """Consolidation group with given ID was not found."""

    code: str = "CONSOLIDATION_GROUP_NOT_FOUND"

    def __init__(self, group_id: str):
        self.group_id = group_id
        super().__init__(f"Consolidation group not found: {group_id}")


class ConsolidationGroupInactiveError(ConfigurationError):
    """Runs cannot be initiated for a deactivated group."""

    code: str = "CONSOLIDATION_GROUP_INACTIVE"

    def __init__(self, group_id: str):
        self.group_id = group_id
        super().__init__(f"Consolidation group is inactive: {group_id}")


class ConsolidationGroupHasCompletedRunsError(ConfigurationError):
    """
    Group cannot be deleted because completed runs reference it.

    Completed runs are the audit trail; the group may only be deactivated.
    """

    code: str = "CONSOLIDATION_GROUP_HAS_COMPLETED_RUNS"

    def __init__(self, group_id: str, completed_run_count: int):
        self.group_id = group_id
        self.completed_run_count = completed_run_count
        super().__init__(
            f"Consolidation group {group_id} has {completed_run_count} "
            f"completed run(s) and cannot be deleted"
        )


class ConsolidationMemberNotFoundError(ConfigurationError):
    """Company is not a member of the group."""

    code: str = "CONSOLIDATION_MEMBER_NOT_FOUND"

    def __init__(self, group_id: str, company_id: str):
        self.group_id = group_id
        self.company_id = company_id
        super().__init__(
            f"Company {company_id} is not a member of group {group_id}"
        )


class ConsolidationMemberAlreadyExistsError(ConfigurationError):
    """Company already appears in the group roster."""

    code: str = "CONSOLIDATION_MEMBER_ALREADY_EXISTS"

    def __init__(self, group_id: str, company_id: str):
        self.group_id = group_id
        self.company_id = company_id
        super().__init__(
            f"Company {company_id} is already a member of group {group_id}"
        )


class ParentCompanyAsMemberError(ConfigurationError):
    """The parent is implicitly 100% owned and never part of the roster."""

    code: str = "PARENT_COMPANY_AS_MEMBER"

    def __init__(self, group_id: str, company_id: str):
        self.group_id = group_id
        self.company_id = company_id
        super().__init__(
            f"Company {company_id} is the parent of group {group_id} "
            f"and cannot be added as a member"
        )


class InvalidOwnershipPercentageError(ConfigurationError):
    """Ownership percentage must lie in (0, 100]."""

    code: str = "INVALID_OWNERSHIP_PERCENTAGE"

    def __init__(self, percentage: Decimal | str):
        self.percentage = str(percentage)
        super().__init__(
            f"Ownership percentage must be greater than 0 and at most 100, "
            f"got {percentage}"
        )


class EliminationRuleNotFoundError(ConfigurationError):
    """Elimination rule with given ID was not found."""

    code: str = "ELIMINATION_RULE_NOT_FOUND"

    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__(f"Elimination rule not found: {rule_id}")


class InvalidEliminationRuleError(ConfigurationError):
    """Elimination rule definition is structurally invalid."""

    code: str = "INVALID_ELIMINATION_RULE"

    def __init__(self, rule_name: str, reason: str):
        self.rule_name = rule_name
        self.reason = reason
        super().__init__(f"Invalid elimination rule '{rule_name}': {reason}")


class ConsolidationRunNotFoundError(ConfigurationError):
    """Consolidation run with given ID was not found."""

    code: str = "CONSOLIDATION_RUN_NOT_FOUND"

    def __init__(self, run_id: str):
        self.run_id = run_id
        super().__init__(f"Consolidation run not found: {run_id}")


class InvalidConsolidationConfigError(ConfigurationError):
    """A configuration file or section could not be interpreted."""

    code: str = "INVALID_CONSOLIDATION_CONFIG"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid consolidation config '{field}': {reason}")


# =============================================================================
# Input-data errors
# =============================================================================


class InputDataError(ConsolidationKernelError):
    """Base exception for collaborator data that cannot be consolidated."""

    code: str = "INPUT_DATA_ERROR"


class ExchangeRateUnavailableError(InputDataError):
    """The rate resolver has no rate for the requested pair, date and class."""

    code: str = "EXCHANGE_RATE_UNAVAILABLE"

    def __init__(
        self,
        from_currency: str,
        to_currency: str,
        on_date: date,
        rate_class: str,
        company_id: str | None = None,
    ):
        self.from_currency = from_currency
        self.to_currency = to_currency
        self.on_date = str(on_date)
        self.rate_class = rate_class
        self.company_id = company_id
        super().__init__(
            f"No {rate_class} rate available for {from_currency}/{to_currency} "
            f"on {on_date}"
            + (f" (company {company_id})" if company_id else "")
        )


class HistoricalRateDateMissingError(InputDataError):
    """Equity line has no historical date and the member no acquisition date."""

    code: str = "HISTORICAL_RATE_DATE_MISSING"

    def __init__(self, company_id: str, account_id: str):
        self.company_id = company_id
        self.account_id = account_id
        super().__init__(
            f"Equity account {account_id} of company {company_id} has no "
            f"historical date and the member has no acquisition date"
        )


class TrialBalanceMissingError(InputDataError):
    """Trial balance provider returned nothing for a member."""

    code: str = "TRIAL_BALANCE_MISSING"

    def __init__(self, company_id: str, as_of_date: date):
        self.company_id = company_id
        self.as_of_date = str(as_of_date)
        super().__init__(
            f"No trial balance for company {company_id} as of {as_of_date}"
        )


class MemberTrialBalanceNotBalancedError(InputDataError):
    """A member trial balance does not net to zero in its functional currency."""

    code: str = "MEMBER_TRIAL_BALANCE_NOT_BALANCED"

    def __init__(self, company_id: str, imbalance: Decimal, currency: str):
        self.company_id = company_id
        self.imbalance = str(imbalance)
        self.currency = currency
        super().__init__(
            f"Trial balance of company {company_id} is out of balance by "
            f"{imbalance} {currency}"
        )


class UnmatchedIntercompanyTransactionError(InputDataError):
    """Unmatched intercompany transaction above the materiality threshold."""

    code: str = "UNMATCHED_INTERCOMPANY_TRANSACTION"

    def __init__(self, transaction_id: str, amount: Decimal, threshold: Decimal):
        self.transaction_id = transaction_id
        self.amount = str(amount)
        self.threshold = str(threshold)
        super().__init__(
            f"Intercompany transaction {transaction_id} is unmatched "
            f"({amount} exceeds materiality threshold {threshold})"
        )


class SameCompanyIntercompanyError(InputDataError):
    """Intercompany transaction must involve two different companies."""

    code: str = "SAME_COMPANY_INTERCOMPANY"

    def __init__(self, company_id: str):
        self.company_id = company_id
        super().__init__(
            f"Intercompany transaction from and to the same company: {company_id}"
        )


class CurrencyError(InputDataError):
    """Base exception for currency-related errors."""

    code: str = "CURRENCY_ERROR"


class InvalidCurrencyError(CurrencyError):
    """Currency code is not a valid ISO 4217 code."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid ISO 4217 currency code: {currency}")


class CurrencyMismatchError(CurrencyError):
    """Amounts in different currencies were combined."""

    code: str = "CURRENCY_MISMATCH"

    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Currency mismatch: expected {expected}, got {actual}")


# =============================================================================
# Invariant violations
# =============================================================================


class InvariantViolationError(ConsolidationKernelError):
    """Base exception for accounting identities that do not hold."""

    code: str = "INVARIANT_VIOLATION"


class ConsolidatedTrialBalanceNotBalancedError(InvariantViolationError):
    """Consolidated debits and credits differ beyond tolerance."""

    code: str = "CONSOLIDATED_TRIAL_BALANCE_NOT_BALANCED"

    def __init__(self, total_debits: Decimal, total_credits: Decimal, currency: str):
        self.total_debits = str(total_debits)
        self.total_credits = str(total_credits)
        self.currency = currency
        super().__init__(
            f"Consolidated trial balance not balanced: debits={total_debits} "
            f"credits={total_credits} {currency}"
        )


class ConsolidatedBalanceSheetNotBalancedError(InvariantViolationError):
    """Total assets differ from total liabilities plus equity."""

    code: str = "CONSOLIDATED_BALANCE_SHEET_NOT_BALANCED"

    def __init__(
        self,
        total_assets: Decimal,
        total_liabilities: Decimal,
        total_equity: Decimal,
    ):
        self.total_assets = str(total_assets)
        self.total_liabilities = str(total_liabilities)
        self.total_equity = str(total_equity)
        self.difference = str(total_assets - (total_liabilities + total_equity))
        super().__init__(
            f"Consolidated balance sheet not balanced: assets={total_assets}, "
            f"liabilities+equity={total_liabilities + total_equity}"
        )


class ConsolidatedIncomeStatementNotBalancedError(InvariantViolationError):
    """Net income does not reconcile to the statement sections."""

    code: str = "CONSOLIDATED_INCOME_STATEMENT_NOT_BALANCED"

    def __init__(self, net_income: Decimal, computed_net_income: Decimal):
        self.net_income = str(net_income)
        self.computed_net_income = str(computed_net_income)
        super().__init__(
            f"Consolidated income statement does not reconcile: "
            f"net income {net_income}, sections give {computed_net_income}"
        )


class NetIncomeAttributionError(InvariantViolationError):
    """Parent and NCI shares do not add up to consolidated net income."""

    code: str = "NET_INCOME_ATTRIBUTION_MISMATCH"

    def __init__(self, consolidated: Decimal, parent: Decimal, nci: Decimal):
        self.consolidated = str(consolidated)
        self.parent = str(parent)
        self.nci = str(nci)
        super().__init__(
            f"Net income attribution mismatch: {parent} + {nci} != {consolidated}"
        )


class UnbalancedEliminationError(InvariantViolationError):
    """Elimination entry debits and credits differ."""

    code: str = "UNBALANCED_ELIMINATION"

    def __init__(self, rule_id: str, debit_amount: Decimal, credit_amount: Decimal):
        self.rule_id = rule_id
        self.debit_amount = str(debit_amount)
        self.credit_amount = str(credit_amount)
        super().__init__(
            f"Elimination for rule {rule_id} is unbalanced: "
            f"debit={debit_amount} credit={credit_amount}"
        )


# =============================================================================
# Lifecycle errors
# =============================================================================


class LifecycleError(ConsolidationKernelError):
    """Base exception for operations attempted in the wrong run state."""

    code: str = "LIFECYCLE_ERROR"


class ConsolidationRunExistsForPeriodError(LifecycleError):
    """A non-terminal run already exists for the (group, period)."""

    code: str = "CONSOLIDATION_RUN_EXISTS_FOR_PERIOD"

    def __init__(self, group_id: str, period_ref: str, existing_run_id: str | None = None):
        self.group_id = group_id
        self.period_ref = period_ref
        self.existing_run_id = existing_run_id
        super().__init__(
            f"A consolidation run is already active for group {group_id} "
            f"period {period_ref}"
            + (f" (run {existing_run_id})" if existing_run_id else "")
        )


class ConsolidationRunCannotBeCancelledError(LifecycleError):
    """Only Pending or InProgress runs can be cancelled."""

    code: str = "CONSOLIDATION_RUN_CANNOT_BE_CANCELLED"

    def __init__(self, run_id: str, status: str):
        self.run_id = run_id
        self.status = status
        super().__init__(
            f"Consolidation run {run_id} cannot be cancelled in status {status}"
        )


class ConsolidationRunCannotBeDeletedError(LifecycleError):
    """Only Pending or Failed runs can be deleted."""

    code: str = "CONSOLIDATION_RUN_CANNOT_BE_DELETED"

    def __init__(self, run_id: str, status: str):
        self.run_id = run_id
        self.status = status
        super().__init__(
            f"Consolidation run {run_id} cannot be deleted in status {status}"
        )


class ConsolidationRunNotCompletedError(LifecycleError):
    """Reports and trial balances require a Completed run."""

    code: str = "CONSOLIDATION_RUN_NOT_COMPLETED"

    def __init__(self, run_id: str, status: str):
        self.run_id = run_id
        self.status = status
        super().__init__(
            f"Consolidation run status is {status}, not Completed"
        )


class ConsolidatedTrialBalanceNotAvailableError(LifecycleError):
    """Completed run has no stored trial balance."""

    code: str = "CONSOLIDATED_TRIAL_BALANCE_NOT_AVAILABLE"

    def __init__(self, run_id: str):
        self.run_id = run_id
        super().__init__(
            f"Consolidated trial balance not available for run {run_id}"
        )


class InvalidRunTransitionError(LifecycleError):
    """Run status transition is not in the transition table."""

    code: str = "INVALID_RUN_TRANSITION"

    def __init__(self, run_id: str, from_status: str, to_status: str):
        self.run_id = run_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Consolidation run {run_id} cannot move from {from_status} "
            f"to {to_status}"
        )


class InvalidStepTransitionError(LifecycleError):
    """Step status transition is not in the transition table."""

    code: str = "INVALID_STEP_TRANSITION"

    def __init__(self, run_id: str, step: str, from_status: str, to_status: str):
        self.run_id = run_id
        self.step = step
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Step {step} of run {run_id} cannot move from {from_status} "
            f"to {to_status}"
        )
