"""
Configuration Loader (``consolidation_config.loader``).

Responsibility
--------------
Load a YAML file and parse it into a frozen ``ConsolidationConfig``.
The runtime entry point is ``consolidation_config.get_active_config()``.

Invariants enforced
-------------------
* Every parse problem raises ``InvalidConsolidationConfigError`` naming
  the offending field; there are no silent defaults for account ids.
* Amounts are parsed as ``Decimal`` from their string form, never float.
* ``compute_checksum`` is a deterministic SHA-256 over the canonical JSON
  form of the raw mapping, so two runs can prove they used the same
  configuration.

Failure modes
-------------
* Missing YAML file -> ``FileNotFoundError`` propagates.
* Malformed YAML -> ``yaml.YAMLError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any
from uuid import UUID

import yaml

from consolidation_config.schema import ConsolidationConfig, GroupAccountDef
from consolidation_kernel.domain.accounts import AccountCategory
from consolidation_kernel.exceptions import InvalidConsolidationConfigError

_GROUP_ACCOUNT_KEYS = (
    "translation_adjustment",
    "equity_method_investment",
    "equity_in_earnings",
    "equity_method_reserve",
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file; an empty file yields an empty dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_decimal(value: Any, field: str, *, allow_none: bool = False) -> Decimal | None:
    if value is None:
        if allow_none:
            return None
        raise InvalidConsolidationConfigError(field, "value is required")
    if isinstance(value, float):
        # YAML floats lose precision; require quoted amounts.
        raise InvalidConsolidationConfigError(field, f"amount must be quoted: {value!r}")
    try:
        result = Decimal(str(value))
    except InvalidOperation as e:
        raise InvalidConsolidationConfigError(field, f"not a decimal: {value!r}") from e
    if result < 0:
        raise InvalidConsolidationConfigError(field, f"must not be negative: {value}")
    return result


def parse_group_account(data: Any, field: str) -> GroupAccountDef:
    if not isinstance(data, dict):
        raise InvalidConsolidationConfigError(field, "expected a mapping")
    try:
        return GroupAccountDef(
            account_id=UUID(str(data["id"])),
            account_number=str(data["number"]),
            name=str(data["name"]),
            category=AccountCategory(data["category"]),
        )
    except KeyError as e:
        raise InvalidConsolidationConfigError(field, f"missing key {e.args[0]!r}") from e
    except ValueError as e:
        raise InvalidConsolidationConfigError(field, str(e)) from e


def parse_consolidation_config(data: dict[str, Any]) -> ConsolidationConfig:
    accounts = data.get("group_accounts")
    if not isinstance(accounts, dict):
        raise InvalidConsolidationConfigError("group_accounts", "section is required")
    parsed = {
        key: parse_group_account(accounts.get(key), f"group_accounts.{key}")
        for key in _GROUP_ACCOUNT_KEYS
    }
    ids = [a.account_id for a in parsed.values()]
    if len(set(ids)) != len(ids):
        raise InvalidConsolidationConfigError("group_accounts", "account ids must be distinct")

    return ConsolidationConfig(
        translation_adjustment_account=parsed["translation_adjustment"],
        equity_method_investment_account=parsed["equity_method_investment"],
        equity_in_earnings_account=parsed["equity_in_earnings"],
        equity_method_reserve_account=parsed["equity_method_reserve"],
        materiality_threshold=parse_decimal(
            data.get("materiality_threshold", "0.00"), "materiality_threshold"
        ),
        balance_tolerance=parse_decimal(
            data.get("balance_tolerance"), "balance_tolerance", allow_none=True
        ),
        checksum=compute_checksum(data),
    )


def load_consolidation_config(path: Path) -> ConsolidationConfig:
    return parse_consolidation_config(load_yaml_file(path))
