"""
Consolidation Kernel

Shared foundation for the consolidation run engine:
- Typed exception hierarchy with machine-readable codes
- Structured JSON logging with run-scoped context
- Decimal-only money, currency and exchange-rate values
- Injectable clocks for deterministic runs
- SQLAlchemy persistence for runs, locks and consolidated trial balances
"""

__version__ = "0.1.0"
