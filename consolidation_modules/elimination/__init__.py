"""
Elimination rule module (``consolidation_modules.elimination``).

Rule persistence, the standard rule templates and ``EliminationRuleService``.
"""

from consolidation_modules.elimination.config import EliminationConfig
from consolidation_modules.elimination.orm import EliminationRuleModel
from consolidation_modules.elimination.profiles import (
    STANDARD_RULE_TEMPLATES,
    StandardRuleTemplate,
)
from consolidation_modules.elimination.service import EliminationRuleService

__all__ = [
    "EliminationConfig",
    "EliminationRuleModel",
    "EliminationRuleService",
    "STANDARD_RULE_TEMPLATES",
    "StandardRuleTemplate",
]
