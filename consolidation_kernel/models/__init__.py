"""
Kernel ORM models.

Run bookkeeping lives in the kernel so that module services (for example
the group service, which refuses to delete a group with completed runs)
can query it without importing the services layer.
"""

from consolidation_kernel.models.consolidation_run import (
    ConsolidatedTrialBalanceLineModel,
    ConsolidationRunLockModel,
    ConsolidationRunModel,
    RunStatus,
    StepName,
    StepStatus,
)

__all__ = [
    "ConsolidatedTrialBalanceLineModel",
    "ConsolidationRunLockModel",
    "ConsolidationRunModel",
    "RunStatus",
    "StepName",
    "StepStatus",
]
