"""
Account selector matching and serialization.

One exhaustive ``match`` per operation over the closed selector variants.
The dict forms are what the elimination rule store persists as JSON.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import Decimal
from typing import Any
from uuid import UUID

from consolidation_kernel.domain.accounts import AccountCategory, AccountInfo
from consolidation_engines.elimination_types import (
    AccountByCategory,
    AccountById,
    AccountByRange,
    AccountSelector,
    TriggerCondition,
)
from consolidation_engines.types import ConsolidationLine


def in_number_range(number: str, low: str, high: str) -> bool:
    """Inclusive range test; all-digit numbers compare numerically."""
    if number.isdecimal() and low.isdecimal() and high.isdecimal():
        return int(low) <= int(number) <= int(high)
    return low <= number <= high


def selector_matches(selector: AccountSelector, account: AccountInfo) -> bool:
    match selector:
        case AccountById(account_id=account_id):
            return account.account_id == account_id
        case AccountByRange(from_number=low, to_number=high):
            return in_number_range(account.account_number, low, high)
        case AccountByCategory(category=category):
            return account.category == category
        case _:
            raise ValueError(f"Unknown account selector: {selector!r}")


def select_lines(
    selector: AccountSelector,
    lines: Iterable[ConsolidationLine],
) -> list[ConsolidationLine]:
    return [line for line in lines if selector_matches(selector, line.account)]


def select_lines_any(
    selectors: Sequence[AccountSelector],
    lines: Iterable[ConsolidationLine],
) -> list[ConsolidationLine]:
    """Lines matched by at least one selector, each line at most once."""
    return [
        line for line in lines
        if any(selector_matches(s, line.account) for s in selectors)
    ]


def referenced_account_ids(selectors: Iterable[AccountSelector]) -> set[UUID]:
    """Account ids named explicitly by AccountById selectors."""
    ids: set[UUID] = set()
    for selector in selectors:
        match selector:
            case AccountById(account_id=account_id):
                ids.add(account_id)
            case AccountByRange() | AccountByCategory():
                pass
            case _:
                raise ValueError(f"Unknown account selector: {selector!r}")
    return ids


# =========================================================================
# Serialization
# =========================================================================


def selector_to_dict(selector: AccountSelector) -> dict[str, str]:
    match selector:
        case AccountById(account_id=account_id):
            return {"kind": "by_id", "account_id": str(account_id)}
        case AccountByRange(from_number=low, to_number=high):
            return {"kind": "by_range", "from": low, "to": high}
        case AccountByCategory(category=category):
            return {"kind": "by_category", "category": category.value}
        case _:
            raise ValueError(f"Unknown account selector: {selector!r}")


def selector_from_dict(data: dict[str, Any]) -> AccountSelector:
    kind = data.get("kind")
    match kind:
        case "by_id":
            return AccountById(account_id=UUID(str(data["account_id"])))
        case "by_range":
            return AccountByRange(from_number=str(data["from"]), to_number=str(data["to"]))
        case "by_category":
            return AccountByCategory(category=AccountCategory(data["category"]))
        case _:
            raise ValueError(f"Unknown account selector kind: {kind!r}")


def condition_to_dict(condition: TriggerCondition) -> dict[str, Any]:
    return {
        "description": condition.description,
        "source_accounts": [selector_to_dict(s) for s in condition.source_accounts],
        "minimum_amount": (
            str(condition.minimum_amount) if condition.minimum_amount is not None else None
        ),
    }


def condition_from_dict(data: dict[str, Any]) -> TriggerCondition:
    minimum = data.get("minimum_amount")
    return TriggerCondition(
        description=data.get("description", ""),
        source_accounts=tuple(selector_from_dict(s) for s in data.get("source_accounts", ())),
        minimum_amount=Decimal(str(minimum)) if minimum is not None else None,
    )
