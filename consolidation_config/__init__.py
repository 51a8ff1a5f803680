"""
Consolidation configuration (``consolidation_config``).

Public API:
    - ``get_active_config(path=None)`` -- the runtime entry point. Loads
      the given YAML file, or the bundled ``defaults.yaml``.
    - ``ConsolidationConfig`` / ``GroupAccountDef`` -- frozen schema types.
    - ``InvalidConsolidationConfigError`` -- raised for malformed files.
"""

from __future__ import annotations

from pathlib import Path

from consolidation_config.loader import (
    compute_checksum,
    load_consolidation_config,
    parse_consolidation_config,
)
from consolidation_config.schema import ConsolidationConfig, GroupAccountDef
from consolidation_kernel.exceptions import InvalidConsolidationConfigError
from consolidation_kernel.logging_config import get_logger

logger = get_logger("config")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: Path | None = None) -> ConsolidationConfig:
    """Load and return the consolidation configuration."""
    source = path or DEFAULTS_PATH
    config = load_consolidation_config(source)
    logger.info(
        "consolidation_config_loaded",
        extra={
            "path": str(source),
            "checksum": config.checksum,
            "materiality_threshold": str(config.materiality_threshold),
        },
    )
    return config


__all__ = [
    "ConsolidationConfig",
    "DEFAULTS_PATH",
    "GroupAccountDef",
    "InvalidConsolidationConfigError",
    "compute_checksum",
    "get_active_config",
    "parse_consolidation_config",
]
