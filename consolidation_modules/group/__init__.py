"""
Consolidation group module (``consolidation_modules.group``).

Group and member roster persistence plus ``GroupService``.
"""

from consolidation_modules.group.orm import ConsolidationGroupModel, ConsolidationMemberModel
from consolidation_modules.group.service import GroupService

__all__ = [
    "ConsolidationGroupModel",
    "ConsolidationMemberModel",
    "GroupService",
]
