"""
Module: consolidation_engines.validation
Responsibility:
    Final balance checks on a consolidated trial balance before a run may
    complete: debits equal credits, the balance-sheet identity holds, net
    income attribution is exact and every elimination entry balances.

Architecture position:
    Engines -- pure calculation layer, zero I/O. Returns issues instead of
    raising so the orchestrator can downgrade them to warnings when the run
    was started with continue_on_warnings.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from consolidation_kernel.domain.accounts import AccountType
from consolidation_kernel.exceptions import (
    ConsolidatedBalanceSheetNotBalancedError,
    ConsolidatedTrialBalanceNotBalancedError,
    NetIncomeAttributionError,
    UnbalancedEliminationError,
)
from consolidation_engines.aggregation import ConsolidatedTrialBalance
from consolidation_engines.elimination_types import EliminationEntry
from consolidation_engines.tracer import traced_engine
from consolidation_engines.types import IssueSeverity, ValidationIssue


def balance_sheet_totals(tb: ConsolidatedTrialBalance) -> tuple[Decimal, Decimal, Decimal]:
    """(total_assets, total_liabilities, total_equity incl. current net income)."""
    assets = tb.balance_for(AccountType.ASSET)
    liabilities = -tb.balance_for(AccountType.LIABILITY)
    equity = -tb.balance_for(AccountType.EQUITY) + tb.consolidated_net_income
    return assets, liabilities, equity


class ConsolidationValidator:
    """Checks the accounting identities of a consolidated trial balance."""

    @traced_engine("consolidation_validation", "1.0", fingerprint_fields=("tolerance",))
    def validate(
        self,
        tb: ConsolidatedTrialBalance,
        eliminations: Sequence[EliminationEntry],
        tolerance: Decimal,
    ) -> tuple[ValidationIssue, ...]:
        issues: list[ValidationIssue] = []

        if not tb.is_balanced(tolerance):
            issues.append(
                ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    code=ConsolidatedTrialBalanceNotBalancedError.code,
                    message=(
                        f"Debits {tb.total_debits} and credits {tb.total_credits} "
                        f"differ by {tb.difference} {tb.reporting_currency}"
                    ),
                    details={
                        "total_debits": str(tb.total_debits),
                        "total_credits": str(tb.total_credits),
                    },
                )
            )

        assets, liabilities, equity = balance_sheet_totals(tb)
        if abs(assets - (liabilities + equity)) > tolerance:
            issues.append(
                ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    code=ConsolidatedBalanceSheetNotBalancedError.code,
                    message=(
                        f"Total assets {assets} != liabilities {liabilities} "
                        f"+ equity {equity}"
                    ),
                    details={
                        "total_assets": str(assets),
                        "total_liabilities": str(liabilities),
                        "total_equity": str(equity),
                    },
                )
            )

        parent = tb.net_income_attributable_to_parent
        nci = tb.net_income_attributable_to_nci
        if parent + nci != tb.consolidated_net_income:
            issues.append(
                ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    code=NetIncomeAttributionError.code,
                    message=(
                        f"Net income attribution {parent} + {nci} != "
                        f"{tb.consolidated_net_income}"
                    ),
                )
            )

        for entry in eliminations:
            if not entry.is_balanced:
                issues.append(
                    ValidationIssue(
                        severity=IssueSeverity.ERROR,
                        code=UnbalancedEliminationError.code,
                        message=f"Elimination entry for rule {entry.rule_name} is unbalanced",
                        reference=str(entry.rule_id),
                    )
                )

        return tuple(issues)
