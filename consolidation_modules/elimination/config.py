"""Elimination rule module configuration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Self

from consolidation_kernel.logging_config import get_logger

logger = get_logger("modules.elimination.config")


@dataclass(frozen=True)
class EliminationConfig:
    """
    Limits applied when rules are created or edited.

    Lower priority numbers run first. Rules created without an explicit
    priority get ``default_priority``.
    """

    default_priority: int = 100
    min_priority: int = 1
    max_priority: int = 9999
    # Priorities of the standard rule set, in template order.
    standard_priority_step: int = 10

    def __post_init__(self):
        if self.min_priority > self.max_priority:
            raise ValueError("min_priority cannot exceed max_priority")
        if not self.min_priority <= self.default_priority <= self.max_priority:
            raise ValueError("default_priority must lie within [min_priority, max_priority]")
        if self.standard_priority_step <= 0:
            raise ValueError("standard_priority_step must be positive")

    def allows(self, priority: int) -> bool:
        return self.min_priority <= priority <= self.max_priority

    @classmethod
    def with_defaults(cls) -> Self:
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        logger.info(
            "elimination_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)
