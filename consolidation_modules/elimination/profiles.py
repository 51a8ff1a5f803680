"""
Standard Elimination Rule Profiles (``consolidation_modules.elimination.profiles``).

Responsibility
--------------
Declares the templates behind ``bulk_create_standard_rules``.  Templates
name account ROLES; the caller's account map resolves each role to a
concrete account id when the rules are created.

Profiles:
    IntercompanyReceivablePayable  -- Dr IC Payable / Cr IC Receivable
    IntercompanySales              -- Dr IC Revenue / Cr IC COGS
    IntercompanyDividend           -- Dr Dividend Income / Cr Dividends Declared
    IntercompanyInvestment         -- Dr Subsidiary Equity / Cr Investment in Subsidiary
"""

from __future__ import annotations

from dataclasses import dataclass

from consolidation_engines.elimination_types import EliminationType


@dataclass(frozen=True)
class StandardRuleTemplate:
    """A rule shape with account roles in place of account ids."""

    name: str
    elimination_type: EliminationType
    debit_role: str
    credit_role: str
    source_roles: tuple[str, ...]
    description: str

    @property
    def roles(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys((self.debit_role, self.credit_role, *self.source_roles)))


IntercompanyReceivablePayable = StandardRuleTemplate(
    name="IntercompanyReceivablePayable",
    elimination_type=EliminationType.INTERCOMPANY_RECEIVABLE_PAYABLE,
    debit_role="INTERCOMPANY_PAYABLE",
    credit_role="INTERCOMPANY_RECEIVABLE",
    source_roles=("INTERCOMPANY_RECEIVABLE",),
    description="Eliminate receivables and payables between group companies",
)

IntercompanySales = StandardRuleTemplate(
    name="IntercompanySales",
    elimination_type=EliminationType.INTERCOMPANY_SALES,
    debit_role="INTERCOMPANY_REVENUE",
    credit_role="INTERCOMPANY_COGS",
    source_roles=("INTERCOMPANY_REVENUE",),
    description="Eliminate sales and cost of sales between group companies",
)

IntercompanyDividend = StandardRuleTemplate(
    name="IntercompanyDividend",
    elimination_type=EliminationType.INTERCOMPANY_DIVIDEND,
    debit_role="DIVIDEND_INCOME",
    credit_role="DIVIDENDS_DECLARED",
    source_roles=("DIVIDEND_INCOME",),
    description="Eliminate dividends paid within the group",
)

IntercompanyInvestment = StandardRuleTemplate(
    name="IntercompanyInvestment",
    elimination_type=EliminationType.INTERCOMPANY_INVESTMENT,
    debit_role="SUBSIDIARY_EQUITY",
    credit_role="INVESTMENT_IN_SUBSIDIARY",
    source_roles=("INVESTMENT_IN_SUBSIDIARY",),
    description="Eliminate the parent's investment against subsidiary equity",
)

# Creation order; the n-th template gets priority n * standard_priority_step.
STANDARD_RULE_TEMPLATES: tuple[StandardRuleTemplate, ...] = (
    IntercompanyReceivablePayable,
    IntercompanySales,
    IntercompanyDividend,
    IntercompanyInvestment,
)
