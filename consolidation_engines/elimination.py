"""
Module: consolidation_engines.elimination
Responsibility:
    Evaluate a group's elimination rules against the translated,
    ownership-weighted consolidation lines and the period's intercompany
    transactions, producing two-line elimination entries.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Rules are evaluated in ascending priority, ties broken by rule id, so
      the applied-entry order is deterministic.
    - Every entry posts the same amount to its debit and credit account.
    - Non-automatic rules are computed but returned as pending, never
      applied.
    - A rule that cannot apply (inactive group, inactive rule, unknown or
      deactivated account, unmet trigger, zero amount) is skipped with a
      recorded reason rather than failing the run.
    - An unmatched intercompany transaction blocks the run when its amount
      exceeds the materiality threshold, unless warnings are allowed to
      continue, in which case it is recorded as a warning.

Failure modes:
    - UnmatchedIntercompanyTransactionError (input-data error).
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from decimal import Decimal
from uuid import UUID

from consolidation_kernel.domain.accounts import AccountInfo
from consolidation_kernel.domain.currency import CurrencyRegistry
from consolidation_kernel.domain.group import (
    ConsolidationGroup,
    ConsolidationMember,
    ConsolidationMethod,
)
from consolidation_kernel.domain.values import Money
from consolidation_kernel.exceptions import UnmatchedIntercompanyTransactionError
from consolidation_kernel.logging_config import get_logger
from consolidation_engines.elimination_types import (
    EliminationEntry,
    EliminationResult,
    EliminationRule,
    EliminationType,
    IntercompanyTransaction,
    MatchingStatus,
    SkippedRule,
    TriggerCondition,
)
from consolidation_engines.selectors import (
    referenced_account_ids,
    select_lines,
    select_lines_any,
)
from consolidation_engines.tracer import traced_engine
from consolidation_engines.types import ConsolidationLine, IssueSeverity, ValidationIssue

logger = get_logger("engines.elimination")


class EliminationRuleEngine:
    """
    Priority-ordered elimination rule evaluation.

    Contract:
        ``evaluate()`` is deterministic: identical rules, lines and
        transactions always produce the same entries in the same order.
    """

    @traced_engine(
        "elimination", "1.0",
        fingerprint_fields=(
            "rules", "lines", "transactions", "continue_on_warnings", "members",
        ),
    )
    def evaluate(
        self,
        group: ConsolidationGroup,
        rules: Sequence[EliminationRule],
        lines: Sequence[ConsolidationLine],
        transactions: Sequence[IntercompanyTransaction],
        accounts: Mapping[UUID, AccountInfo],
        reporting_currency: str,
        materiality_threshold: Decimal,
        continue_on_warnings: bool = False,
        members: Mapping[UUID, ConsolidationMember] | None = None,
    ) -> EliminationResult:
        """
        Evaluate every rule in priority order.

        ``members`` is the consolidated roster keyed by company id. When
        given, only the parent and Full or Proportionate members count as
        intercompany partners, and a Proportionate side is eliminated at
        its ownership fraction. Without it every company present in
        ``lines`` counts in full.
        """
        issues = self.check_transactions(
            transactions, materiality_threshold, continue_on_warnings
        )
        eligible = self.eligible_transactions(transactions, continue_on_warnings)
        partner_fractions = self.partner_fractions(group, lines, members)

        applied: list[EliminationEntry] = []
        pending: list[EliminationEntry] = []
        skipped: list[SkippedRule] = []

        for rule in sorted(rules, key=lambda r: r.sort_key):
            reason = self._skip_reason(group, rule, accounts)
            entry: EliminationEntry | None = None
            if reason is None:
                entry, reason = self._evaluate_rule(
                    rule, lines, eligible, partner_fractions, reporting_currency
                )

            if entry is None:
                skipped.append(SkippedRule(rule.id, rule.name, reason or "not applicable"))
                logger.info(
                    "elimination_rule_skipped",
                    extra={"rule_id": str(rule.id), "rule_name": rule.name, "reason": reason},
                )
                continue

            if rule.is_automatic:
                applied.append(entry)
                logger.info(
                    "elimination_rule_applied",
                    extra={
                        "rule_id": str(rule.id),
                        "priority": rule.priority,
                        "elimination_type": rule.elimination_type.value,
                        "amount": str(entry.amount.amount),
                    },
                )
            else:
                pending.append(entry)
                logger.info(
                    "elimination_rule_pending_manual",
                    extra={"rule_id": str(rule.id), "amount": str(entry.amount.amount)},
                )

        return EliminationResult(
            applied=tuple(applied),
            pending_manual=tuple(pending),
            skipped=tuple(skipped),
            issues=tuple(issues),
        )

    @staticmethod
    def partner_fractions(
        group: ConsolidationGroup,
        lines: Sequence[ConsolidationLine],
        members: Mapping[UUID, ConsolidationMember] | None,
    ) -> dict[UUID, Decimal]:
        """Consolidated fraction of each company that can be an elimination partner."""
        if members is None:
            fractions = {line.company_id: Decimal("1") for line in lines}
        else:
            fractions = {}
            for company_id, member in members.items():
                match member.consolidation_method:
                    case ConsolidationMethod.FULL:
                        fractions[company_id] = Decimal("1")
                    case ConsolidationMethod.PROPORTIONATE:
                        fractions[company_id] = member.ownership_fraction
                    case ConsolidationMethod.EQUITY:
                        pass
        fractions[group.parent_company_id] = Decimal("1")
        return fractions

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def check_transactions(
        self,
        transactions: Sequence[IntercompanyTransaction],
        materiality_threshold: Decimal,
        continue_on_warnings: bool,
    ) -> list[ValidationIssue]:
        """Raise on a material unmatched transaction; return warnings otherwise."""
        issues: list[ValidationIssue] = []
        for txn in sorted(transactions, key=lambda t: str(t.id)):
            match txn.matching_status:
                case MatchingStatus.UNMATCHED:
                    material = abs(txn.amount) > materiality_threshold
                    if material and not continue_on_warnings:
                        raise UnmatchedIntercompanyTransactionError(
                            str(txn.id), abs(txn.amount), materiality_threshold
                        )
                    issues.append(
                        ValidationIssue(
                            severity=IssueSeverity.WARNING,
                            code=UnmatchedIntercompanyTransactionError.code,
                            message=(
                                f"Unmatched intercompany transaction {txn.id} "
                                f"for {txn.amount} {txn.currency}"
                            ),
                            reference=str(txn.id),
                            details={"material": str(material).lower()},
                        )
                    )
                case MatchingStatus.PARTIALLY_MATCHED:
                    issues.append(
                        ValidationIssue(
                            severity=IssueSeverity.WARNING,
                            code="PARTIALLY_MATCHED_INTERCOMPANY_TRANSACTION",
                            message=(
                                f"Intercompany transaction {txn.id} is partially "
                                f"matched (variance {txn.variance_amount})"
                            ),
                            reference=str(txn.id),
                        )
                    )
                case MatchingStatus.MATCHED | MatchingStatus.VARIANCE_APPROVED:
                    pass
                case _:
                    raise ValueError(f"Unknown matching status: {txn.matching_status}")
        return issues

    def eligible_transactions(
        self,
        transactions: Sequence[IntercompanyTransaction],
        continue_on_warnings: bool,
    ) -> list[IntercompanyTransaction]:
        """Unmatched transactions are only eligible when warnings may continue."""
        return [
            t for t in transactions
            if continue_on_warnings or t.matching_status != MatchingStatus.UNMATCHED
        ]

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def _skip_reason(
        self,
        group: ConsolidationGroup,
        rule: EliminationRule,
        accounts: Mapping[UUID, AccountInfo],
    ) -> str | None:
        if not group.is_active:
            return "group is inactive"
        if rule.group_id != group.id:
            return f"rule belongs to group {rule.group_id}"
        if not rule.is_active:
            return "rule is inactive"

        referenced = [("debit", rule.debit_account_id), ("credit", rule.credit_account_id)]
        selector_ids = referenced_account_ids(
            list(rule.source_accounts)
            + list(rule.target_accounts)
            + [s for c in rule.trigger_conditions for s in c.source_accounts]
        )
        referenced += [("selected", account_id) for account_id in sorted(selector_ids, key=str)]

        for role, account_id in referenced:
            account = accounts.get(account_id)
            if account is None:
                if role == "selected":
                    continue
                return f"{role} account {account_id} not found"
            if not account.is_active:
                return f"{role} account {account_id} is deactivated"
        return None

    def _condition_met(
        self,
        condition: TriggerCondition,
        lines: Sequence[ConsolidationLine],
    ) -> bool:
        for selector in condition.source_accounts:
            matched = select_lines(selector, lines)
            if not any(
                line.amount != 0
                and (
                    condition.minimum_amount is None
                    or abs(line.amount) >= condition.minimum_amount
                )
                for line in matched
            ):
                return False
        return True

    def _evaluate_rule(
        self,
        rule: EliminationRule,
        lines: Sequence[ConsolidationLine],
        transactions: Sequence[IntercompanyTransaction],
        partner_fractions: Mapping[UUID, Decimal],
        reporting_currency: str,
    ) -> tuple[EliminationEntry | None, str | None]:
        for condition in rule.trigger_conditions:
            if not self._condition_met(condition, lines):
                return None, f"trigger condition not met: {condition.description}"

        matched = select_lines_any(rule.source_accounts, lines)
        amount = CurrencyRegistry.quantize(
            self._elimination_amount(rule.elimination_type, matched, partner_fractions),
            reporting_currency,
        )
        if amount == 0:
            return None, "no eliminable balance"

        related = tuple(
            t.id for t in sorted(transactions, key=lambda t: str(t.id))
            if t.transaction_type in rule.elimination_type.transaction_types
        )
        return (
            EliminationEntry(
                rule_id=rule.id,
                rule_name=rule.name,
                elimination_type=rule.elimination_type,
                priority=rule.priority,
                debit_account_id=rule.debit_account_id,
                credit_account_id=rule.credit_account_id,
                amount=Money.of(amount, reporting_currency),
                is_automatic=rule.is_automatic,
                matched_line_count=len(matched),
                transaction_ids=related,
            ),
            None,
        )

    def _elimination_amount(
        self,
        elimination_type: EliminationType,
        matched: Sequence[ConsolidationLine],
        partner_fractions: Mapping[UUID, Decimal],
    ) -> Decimal:
        """
        Magnitude of the matched source balances for this elimination type.

        A Proportionate line is already carried at its own fraction, so a
        partnered line is scaled down to the smaller of the two fractions.
        """
        if not elimination_type.requires_group_partner:
            return abs(sum((line.amount for line in matched), Decimal("0")))

        total = Decimal("0")
        for line in matched:
            partner = line.intercompany_partner_id
            if partner is None or partner == line.company_id:
                continue
            partner_fraction = partner_fractions.get(partner)
            own_fraction = partner_fractions.get(line.company_id)
            if partner_fraction is None or not own_fraction:
                continue
            total += line.amount * min(own_fraction, partner_fraction) / own_fraction
        return abs(total)
