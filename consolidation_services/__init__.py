"""
consolidation_services -- Run orchestration over engines, modules and kernel.

Public API:
    - ``ConsolidationOrchestrator`` -- initiate, cancel, delete and query
      consolidation runs; consolidated trial balance and reports.
    - ``ConsolidationRun`` / ``RunFlags`` / ``StepRecord`` -- run DTOs.
    - ``RateResolver`` / ``TrialBalanceProvider`` /
      ``IntercompanyTransactionProvider`` -- collaborator ports.
"""

from consolidation_kernel.models import RunStatus, StepName, StepStatus
from consolidation_services._run_types import (
    ConsolidationRun,
    RunFlags,
    RunSnapshot,
    StepRecord,
)
from consolidation_services.orchestrator import ConsolidationOrchestrator
from consolidation_services.ports import (
    IntercompanyTransactionProvider,
    RateResolver,
    TrialBalanceProvider,
)
from consolidation_services.run_repository import ConsolidationRunRepository

__all__ = [
    "ConsolidationOrchestrator",
    "ConsolidationRun",
    "ConsolidationRunRepository",
    "IntercompanyTransactionProvider",
    "RateResolver",
    "RunFlags",
    "RunSnapshot",
    "RunStatus",
    "StepName",
    "StepRecord",
    "StepStatus",
    "TrialBalanceProvider",
]
