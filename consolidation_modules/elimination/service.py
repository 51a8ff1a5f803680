"""
Elimination Rule Service (``consolidation_modules.elimination.service``).

Responsibility
--------------
Create, update, activate, deactivate and reprioritize a group's
elimination rules, and bulk-create the standard rule set.

Architecture position
---------------------
**Modules layer** -- ``EliminationRuleService`` is the sole public entry
point for rule configuration.  Rule evaluation belongs to
``consolidation_engines.elimination``.

Invariants enforced
-------------------
* Each public method owns the transaction boundary.
* Debit and credit accounts differ; priority lies within the configured
  range; every rule selects at least one source account.
* Edits never touch runs already executed: each run evaluates the rule
  snapshot taken at its initiate.

Failure modes
-------------
* ``ConsolidationGroupNotFoundError`` for an unknown group.
* ``EliminationRuleNotFoundError`` for an unknown rule.
* ``InvalidEliminationRuleError`` for an invalid rule or unmapped role.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import replace
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from consolidation_kernel.exceptions import (
    ConsolidationGroupNotFoundError,
    EliminationRuleNotFoundError,
    InvalidEliminationRuleError,
)
from consolidation_kernel.logging_config import get_logger
from consolidation_engines.elimination_types import (
    AccountById,
    AccountByRange,
    AccountSelector,
    EliminationRule,
    EliminationType,
    TriggerCondition,
)
from consolidation_engines.selectors import (
    condition_to_dict,
    in_number_range,
    selector_to_dict,
)
from consolidation_modules.elimination.config import EliminationConfig
from consolidation_modules.elimination.orm import EliminationRuleModel
from consolidation_modules.elimination.profiles import (
    STANDARD_RULE_TEMPLATES,
    StandardRuleTemplate,
)
from consolidation_modules.group.orm import ConsolidationGroupModel

logger = get_logger("modules.elimination.service")


class EliminationRuleService:
    """
    Elimination rule configuration.

    Contract
    --------
    * Mutating methods validate the resulting rule before committing and
      return the committed ``EliminationRule`` DTO.
    * ``list_active_for_group`` returns rules in evaluation order
      (ascending priority, ties by rule id).
    """

    def __init__(self, session: Session, config: EliminationConfig | None = None):
        self._session = session
        self._config = config or EliminationConfig.with_defaults()

    # =========================================================================
    # Create / update
    # =========================================================================

    def create_rule(
        self,
        group_id: UUID,
        name: str,
        elimination_type: EliminationType,
        debit_account_id: UUID,
        credit_account_id: UUID,
        actor_id: UUID,
        source_accounts: Sequence[AccountSelector] = (),
        target_accounts: Sequence[AccountSelector] = (),
        trigger_conditions: Sequence[TriggerCondition] = (),
        is_automatic: bool = True,
        priority: int | None = None,
        description: str | None = None,
    ) -> EliminationRule:
        try:
            rule = self._add_rule(
                EliminationRule(
                    id=uuid4(),
                    group_id=group_id,
                    name=name,
                    elimination_type=elimination_type,
                    debit_account_id=debit_account_id,
                    credit_account_id=credit_account_id,
                    trigger_conditions=tuple(trigger_conditions),
                    source_accounts=tuple(source_accounts),
                    target_accounts=tuple(target_accounts),
                    is_automatic=is_automatic,
                    priority=self._config.default_priority if priority is None else priority,
                    description=description,
                ),
                actor_id,
            )
            self._session.commit()
            return rule
        except Exception:
            self._session.rollback()
            raise

    def update_rule(
        self,
        rule_id: UUID,
        actor_id: UUID,
        name: str | None = None,
        description: str | None = None,
        debit_account_id: UUID | None = None,
        credit_account_id: UUID | None = None,
        source_accounts: Sequence[AccountSelector] | None = None,
        target_accounts: Sequence[AccountSelector] | None = None,
        trigger_conditions: Sequence[TriggerCondition] | None = None,
        is_automatic: bool | None = None,
    ) -> EliminationRule:
        changes: dict = {}
        if name is not None:
            changes["name"] = name
        if description is not None:
            changes["description"] = description
        if debit_account_id is not None:
            changes["debit_account_id"] = debit_account_id
        if credit_account_id is not None:
            changes["credit_account_id"] = credit_account_id
        if source_accounts is not None:
            changes["source_accounts"] = tuple(source_accounts)
        if target_accounts is not None:
            changes["target_accounts"] = tuple(target_accounts)
        if trigger_conditions is not None:
            changes["trigger_conditions"] = tuple(trigger_conditions)
        if is_automatic is not None:
            changes["is_automatic"] = is_automatic
        return self._update(rule_id, actor_id, "elimination_rule_updated", **changes)

    def activate_rule(self, rule_id: UUID, actor_id: UUID) -> EliminationRule:
        return self._update(rule_id, actor_id, "elimination_rule_activated", is_active=True)

    def deactivate_rule(self, rule_id: UUID, actor_id: UUID) -> EliminationRule:
        return self._update(rule_id, actor_id, "elimination_rule_deactivated", is_active=False)

    def reprioritize(self, rule_id: UUID, priority: int, actor_id: UUID) -> EliminationRule:
        return self._update(rule_id, actor_id, "elimination_rule_reprioritized", priority=priority)

    def bulk_create_standard_rules(
        self,
        group_id: UUID,
        account_map: Mapping[str, UUID],
        actor_id: UUID,
        templates: Sequence[StandardRuleTemplate] = STANDARD_RULE_TEMPLATES,
    ) -> tuple[EliminationRule, ...]:
        """
        Create one rule per template, at priorities 10, 20, 30, ...

        ``account_map`` maps each template role (for example
        ``"INTERCOMPANY_RECEIVABLE"``) to an account id.  All rules are
        created in one transaction; an unmapped role creates none.
        """
        try:
            created: list[EliminationRule] = []
            for index, template in enumerate(templates, start=1):
                missing = [role for role in template.roles if role not in account_map]
                if missing:
                    raise InvalidEliminationRuleError(
                        template.name, f"unmapped account roles: {', '.join(missing)}"
                    )
                created.append(
                    self._add_rule(
                        EliminationRule(
                            id=uuid4(),
                            group_id=group_id,
                            name=template.name,
                            elimination_type=template.elimination_type,
                            debit_account_id=account_map[template.debit_role],
                            credit_account_id=account_map[template.credit_role],
                            source_accounts=tuple(
                                AccountById(account_map[role]) for role in template.source_roles
                            ),
                            priority=index * self._config.standard_priority_step,
                            description=template.description,
                        ),
                        actor_id,
                    )
                )
            self._session.commit()
            logger.info("standard_elimination_rules_created", extra={
                "group_id": str(group_id),
                "rule_count": len(created),
            })
            return tuple(created)
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Queries
    # =========================================================================

    def get_rule(self, rule_id: UUID) -> EliminationRule:
        return self._get_model(rule_id).to_dto()

    def list_rules(self, group_id: UUID) -> tuple[EliminationRule, ...]:
        rows = self._session.scalars(
            select(EliminationRuleModel).where(EliminationRuleModel.group_id == group_id)
        ).all()
        return tuple(sorted((r.to_dto() for r in rows), key=lambda r: r.sort_key))

    def list_active_for_group(self, group_id: UUID) -> tuple[EliminationRule, ...]:
        return tuple(r for r in self.list_rules(group_id) if r.is_active)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _add_rule(self, rule: EliminationRule, actor_id: UUID) -> EliminationRule:
        if self._session.get(ConsolidationGroupModel, rule.group_id) is None:
            raise ConsolidationGroupNotFoundError(str(rule.group_id))
        self._validate(rule)
        self._session.add(EliminationRuleModel.from_dto(rule, created_by_id=actor_id))
        try:
            self._session.flush()
        except IntegrityError as e:
            raise InvalidEliminationRuleError(
                rule.name, "a rule with this name already exists in the group"
            ) from e
        logger.info("elimination_rule_created", extra={
            "rule_id": str(rule.id),
            "group_id": str(rule.group_id),
            "rule_name": rule.name,
            "elimination_type": rule.elimination_type.value,
            "priority": rule.priority,
        })
        return rule

    def _update(self, rule_id: UUID, actor_id: UUID, event: str, **changes) -> EliminationRule:
        try:
            model = self._get_model(rule_id)
            rule = replace(model.to_dto(), **changes)
            self._validate(rule)

            model.name = rule.name
            model.description = rule.description
            model.debit_account_id = rule.debit_account_id
            model.credit_account_id = rule.credit_account_id
            model.trigger_conditions = [condition_to_dict(c) for c in rule.trigger_conditions]
            model.source_accounts = [selector_to_dict(s) for s in rule.source_accounts]
            model.target_accounts = [selector_to_dict(s) for s in rule.target_accounts]
            model.is_automatic = rule.is_automatic
            model.priority = rule.priority
            model.is_active = rule.is_active
            model.updated_by_id = actor_id
            try:
                self._session.flush()
            except IntegrityError as e:
                raise InvalidEliminationRuleError(
                    rule.name, "a rule with this name already exists in the group"
                ) from e
            self._session.commit()
            logger.info(event, extra={
                "rule_id": str(rule_id),
                "priority": rule.priority,
                "is_active": rule.is_active,
            })
            return rule
        except Exception:
            self._session.rollback()
            raise

    def _get_model(self, rule_id: UUID) -> EliminationRuleModel:
        model = self._session.get(EliminationRuleModel, rule_id)
        if model is None:
            raise EliminationRuleNotFoundError(str(rule_id))
        return model

    def _validate(self, rule: EliminationRule) -> None:
        if not rule.name or not rule.name.strip():
            raise InvalidEliminationRuleError(rule.name, "name is required")
        if rule.debit_account_id == rule.credit_account_id:
            raise InvalidEliminationRuleError(
                rule.name, "debit and credit accounts must differ"
            )
        if not self._config.allows(rule.priority):
            raise InvalidEliminationRuleError(
                rule.name,
                f"priority {rule.priority} outside "
                f"[{self._config.min_priority}, {self._config.max_priority}]",
            )
        if not rule.source_accounts:
            raise InvalidEliminationRuleError(
                rule.name, "at least one source account selector is required"
            )
        for condition in rule.trigger_conditions:
            if not condition.source_accounts:
                raise InvalidEliminationRuleError(
                    rule.name, f"trigger condition {condition.description!r} selects no accounts"
                )
            if condition.minimum_amount is not None and condition.minimum_amount < 0:
                raise InvalidEliminationRuleError(
                    rule.name, f"trigger condition {condition.description!r} has a negative minimum"
                )
        selectors = (
            list(rule.source_accounts)
            + list(rule.target_accounts)
            + [s for c in rule.trigger_conditions for s in c.source_accounts]
        )
        for selector in selectors:
            if isinstance(selector, AccountByRange) and not in_number_range(
                selector.from_number, selector.from_number, selector.to_number
            ):
                raise InvalidEliminationRuleError(
                    rule.name,
                    f"account range {selector.from_number}..{selector.to_number} is empty",
                )
