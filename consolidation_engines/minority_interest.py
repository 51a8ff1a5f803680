"""
Module: consolidation_engines.minority_interest
Responsibility:
    Turn each member's translated trial balance into the lines it
    contributes to the consolidated trial balance, according to its
    consolidation method, and split its equity and net income between the
    parent and non-controlling interests (NCI).

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Full: every line at 100%; NCI share = 100% - ownership of the
      member's equity and net income.
    - Proportionate: every line scaled by ownership, no NCI. The rounding
      residual of scaling goes to the member's CTA line so that the member
      contribution still sums to zero.
    - Equity: no line-by-line consolidation. One equity-method investment
      line (ownership x net assets), one equity-in-earnings line
      (ownership x net income) and a balancing equity-method reserve line.
      Included only when equity-method investments are requested.
    - NCI shares are rounded cumulatively across members, so the total
      NCI net income is within half a minor unit of the exact figure.
      Within a member, per-line NCI portions sum exactly to the member's
      rounded share (the residual lands on the largest line).

Failure modes:
    - ValueError on an unknown consolidation method.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from consolidation_kernel.domain.accounts import AccountType
from consolidation_kernel.domain.currency import CurrencyRegistry
from consolidation_kernel.domain.group import ConsolidationMember, ConsolidationMethod
from consolidation_kernel.logging_config import get_logger
from consolidation_engines.tracer import traced_engine
from consolidation_engines.types import (
    ConsolidationLine,
    GroupAccounts,
    LineSource,
    TranslatedTrialBalance,
)

logger = get_logger("engines.minority_interest")

ZERO = Decimal("0")


@dataclass(frozen=True)
class MemberContribution:
    """What one company contributes to the consolidated trial balance."""

    company_id: UUID
    consolidation_method: ConsolidationMethod
    ownership_percentage: Decimal
    lines: tuple[ConsolidationLine, ...]
    net_income: Decimal
    nci_net_income: Decimal = ZERO
    nci_equity: Decimal = ZERO
    excluded: bool = False


@dataclass(frozen=True)
class AllocationResult:
    contributions: tuple[MemberContribution, ...]
    # Signed, debit-positive NCI portion per account.
    nci_by_account: Mapping[UUID, Decimal] = field(default_factory=dict)
    net_income_attributable_to_nci: Decimal = ZERO
    nci_equity: Decimal = ZERO

    @property
    def lines(self) -> tuple[ConsolidationLine, ...]:
        return tuple(line for c in self.contributions for line in c.lines)


def cumulative_round(amounts: Sequence[Decimal], currency: str) -> list[Decimal]:
    """
    Round a sequence so that every running total is the rounded exact
    running total. The sum of the results is the rounded exact sum.
    """
    rounded: list[Decimal] = []
    running_exact = ZERO
    running_rounded = ZERO
    for amount in amounts:
        running_exact += amount
        target = CurrencyRegistry.quantize(running_exact, currency)
        rounded.append(target - running_rounded)
        running_rounded = target
    return rounded


def attribute_net_income(consolidated: Decimal, nci: Decimal) -> tuple[Decimal, Decimal]:
    """(parent, nci) shares; parent is the difference so the pair sums exactly."""
    return consolidated - nci, nci


class MinorityInterestAllocator:
    """
    Ownership-weighted contribution and NCI allocation.

    Contract:
        ``allocate()`` is deterministic: members are processed in company
        id order and the same inputs always round the same way.

    Non-goals:
        - Does NOT translate currencies (input is already translated).
        - Does NOT apply eliminations (profit or loss from eliminations is
          attributed wholly to the parent by the aggregator).
    """

    @traced_engine(
        "minority_interest", "1.0",
        fingerprint_fields=("translated", "members", "include_equity_method_investments"),
    )
    def allocate(
        self,
        translated: Sequence[TranslatedTrialBalance],
        members: Mapping[UUID, ConsolidationMember],
        reporting_currency: str,
        group_accounts: GroupAccounts,
        include_equity_method_investments: bool = False,
    ) -> AllocationResult:
        ordered = sorted(translated, key=lambda t: str(t.company_id))
        weighted: list[tuple[TranslatedTrialBalance, ConsolidationMember, tuple[ConsolidationLine, ...], bool]] = []

        for tb in ordered:
            member = members[tb.company_id]
            excluded = False
            match member.consolidation_method:
                case ConsolidationMethod.FULL:
                    lines = tb.lines
                case ConsolidationMethod.PROPORTIONATE:
                    lines = self._proportionate_lines(
                        tb, member, reporting_currency, group_accounts
                    )
                case ConsolidationMethod.EQUITY:
                    if include_equity_method_investments:
                        lines = self._equity_method_lines(
                            tb, member, reporting_currency, group_accounts
                        )
                    else:
                        lines, excluded = (), True
                case _:
                    raise ValueError(
                        f"Unknown consolidation method: {member.consolidation_method}"
                    )
            weighted.append((tb, member, lines, excluded))

        # NCI applies to Full members with less than 100% ownership.
        nci_members = [
            (tb, member) for tb, member, _, _ in weighted
            if member.consolidation_method == ConsolidationMethod.FULL
            and member.nci_fraction > 0
        ]
        nci_income = cumulative_round(
            [tb.net_income * m.nci_fraction for tb, m in nci_members], reporting_currency
        )
        nci_equity = cumulative_round(
            [tb.equity * m.nci_fraction for tb, m in nci_members], reporting_currency
        )
        nci_shares = {
            tb.company_id: (ni, eq)
            for (tb, _), ni, eq in zip(nci_members, nci_income, nci_equity)
        }

        nci_by_account: dict[UUID, Decimal] = {}
        contributions: list[MemberContribution] = []
        for tb, member, lines, excluded in weighted:
            share_ni, share_eq = nci_shares.get(tb.company_id, (ZERO, ZERO))
            if tb.company_id in nci_shares:
                income_lines = [l for l in lines if l.account_type.is_income_statement]
                equity_lines = [l for l in lines if l.account_type == AccountType.EQUITY]
                for account_id, amount in (
                    self._distribute(income_lines, member.nci_fraction, -share_ni, reporting_currency)
                    + self._distribute(equity_lines, member.nci_fraction, -share_eq, reporting_currency)
                ):
                    nci_by_account[account_id] = nci_by_account.get(account_id, ZERO) + amount

            contributions.append(
                MemberContribution(
                    company_id=tb.company_id,
                    consolidation_method=member.consolidation_method,
                    ownership_percentage=member.ownership_percentage,
                    lines=lines,
                    net_income=tb.net_income,
                    nci_net_income=share_ni,
                    nci_equity=share_eq,
                    excluded=excluded,
                )
            )

        total_nci_income = sum(nci_income, ZERO)
        total_nci_equity = sum(nci_equity, ZERO)
        logger.info(
            "minority_interest_allocated",
            extra={
                "member_count": len(contributions),
                "excluded_count": sum(1 for c in contributions if c.excluded),
                "nci_net_income": str(total_nci_income),
                "nci_equity": str(total_nci_equity),
            },
        )

        return AllocationResult(
            contributions=tuple(contributions),
            nci_by_account=nci_by_account,
            net_income_attributable_to_nci=total_nci_income,
            nci_equity=total_nci_equity,
        )

    # ------------------------------------------------------------------
    # Method-specific lines
    # ------------------------------------------------------------------

    def _proportionate_lines(
        self,
        tb: TranslatedTrialBalance,
        member: ConsolidationMember,
        currency: str,
        group_accounts: GroupAccounts,
    ) -> tuple[ConsolidationLine, ...]:
        fraction = member.ownership_fraction
        scaled = [
            ConsolidationLine(
                company_id=l.company_id,
                account=l.account,
                amount=CurrencyRegistry.quantize(l.amount * fraction, currency),
                source=l.source,
                intercompany_partner_id=l.intercompany_partner_id,
            )
            for l in tb.lines
        ]
        residual = -sum((l.amount for l in scaled), ZERO)
        if residual == 0:
            return tuple(scaled)

        for i, line in enumerate(scaled):
            if line.source == LineSource.TRANSLATION_ADJUSTMENT:
                scaled[i] = ConsolidationLine(
                    company_id=line.company_id,
                    account=line.account,
                    amount=line.amount + residual,
                    source=line.source,
                )
                return tuple(scaled)

        scaled.append(
            ConsolidationLine(
                company_id=tb.company_id,
                account=group_accounts.translation_adjustment,
                amount=residual,
                source=LineSource.ROUNDING,
            )
        )
        return tuple(scaled)

    def _equity_method_lines(
        self,
        tb: TranslatedTrialBalance,
        member: ConsolidationMember,
        currency: str,
        group_accounts: GroupAccounts,
    ) -> tuple[ConsolidationLine, ...]:
        fraction = member.ownership_fraction
        investment = CurrencyRegistry.quantize(tb.net_assets * fraction, currency)
        earnings = CurrencyRegistry.quantize(tb.net_income * fraction, currency)
        candidates = (
            (group_accounts.equity_method_investment, investment),
            (group_accounts.equity_in_earnings, -earnings),
            (group_accounts.equity_method_reserve, earnings - investment),
        )
        return tuple(
            ConsolidationLine(
                company_id=tb.company_id,
                account=account,
                amount=amount,
                source=LineSource.EQUITY_METHOD,
            )
            for account, amount in candidates
            if amount != 0
        )

    def _distribute(
        self,
        lines: Sequence[ConsolidationLine],
        fraction: Decimal,
        target_total: Decimal,
        currency: str,
    ) -> list[tuple[UUID, Decimal]]:
        """Per-line NCI portions summing exactly to ``target_total``."""
        nonzero = [l for l in lines if l.amount != 0]
        if not nonzero:
            return []
        shares = [CurrencyRegistry.quantize(l.amount * fraction, currency) for l in nonzero]
        residual = target_total - sum(shares, ZERO)
        if residual != 0:
            largest = max(range(len(nonzero)), key=lambda i: abs(nonzero[i].amount))
            shares[largest] += residual
        return [(l.account_id, s) for l, s in zip(nonzero, shares)]
