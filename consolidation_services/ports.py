"""
consolidation_services.ports -- Protocol ports the orchestrator depends on.

Responsibility:
    Declare the three external collaborators of a consolidation run:
    exchange rates, member trial balances and intercompany transactions.
    Storage of accounts, journals and rates is out of scope; production
    wiring supplies adapters, tests supply deterministic doubles.

Architecture position:
    Services -- interfaces only, no implementation.

Contract:
    A collaborator returns None (or an empty sequence) for "not found".
    Any exception it raises becomes a failure of the step that called it.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from consolidation_kernel.domain.rates import RateClass
from consolidation_kernel.domain.trial_balance import MemberTrialBalance
from consolidation_engines.elimination_types import IntercompanyTransaction


class RateResolver(Protocol):
    """Exchange rates by currency pair, date and rate class."""

    def get_rate(
        self,
        from_currency: str,
        to_currency: str,
        on_date: date,
        rate_class: RateClass,
    ) -> Decimal | None: ...


class TrialBalanceProvider(Protocol):
    """Per-company trial balances in functional currency."""

    def get_trial_balance(
        self,
        company_id: UUID,
        as_of_date: date,
    ) -> MemberTrialBalance | None: ...


class IntercompanyTransactionProvider(Protocol):
    """Intercompany transactions of a group for a period."""

    def get_transactions(
        self,
        group_id: UUID,
        period_ref: str,
    ) -> Sequence[IntercompanyTransaction]: ...
