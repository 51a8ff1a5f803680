"""
Tests for the typed exception hierarchy.

Every exception carries a machine-readable ``code`` and belongs to exactly
one failure category.
"""

import inspect

import pytest

from consolidation_kernel import exceptions as exc_module
from consolidation_kernel.exceptions import (
    ConfigurationError,
    ConsolidationKernelError,
    ConsolidationRunExistsForPeriodError,
    ExchangeRateUnavailableError,
    InputDataError,
    InvariantViolationError,
    LifecycleError,
    TrialBalanceMissingError,
    UnmatchedIntercompanyTransactionError,
)

CATEGORIES = (ConfigurationError, InputDataError, InvariantViolationError, LifecycleError)


def _concrete_exceptions():
    return [
        cls for _, cls in inspect.getmembers(exc_module, inspect.isclass)
        if issubclass(cls, ConsolidationKernelError)
        and cls is not ConsolidationKernelError
        and cls not in CATEGORIES
    ]


class TestHierarchy:
    @pytest.mark.parametrize("cls", _concrete_exceptions(), ids=lambda c: c.__name__)
    def test_belongs_to_one_category(self, cls):
        matches = [c for c in CATEGORIES if issubclass(cls, c)]
        assert len(matches) == 1

    def test_codes_are_unique(self):
        codes = [cls.code for cls in _concrete_exceptions()]
        assert len(codes) == len(set(codes))


class TestStructuredData:
    def test_rate_unavailable_names_pair_date_and_class(self):
        from datetime import date

        error = ExchangeRateUnavailableError(
            "EUR", "USD", date(2024, 3, 31), "closing", company_id="abc",
        )
        assert error.code == "EXCHANGE_RATE_UNAVAILABLE"
        assert error.from_currency == "EUR"
        assert error.on_date == "2024-03-31"
        assert "closing" in str(error)
        assert "abc" in str(error)

    def test_trial_balance_missing(self):
        from datetime import date

        error = TrialBalanceMissingError("c-1", date(2024, 3, 31))
        assert error.company_id == "c-1"
        assert error.as_of_date == "2024-03-31"

    def test_unmatched_transaction_amounts_are_strings(self):
        from decimal import Decimal

        error = UnmatchedIntercompanyTransactionError("t-1", Decimal("10.00"), Decimal("0.00"))
        assert error.amount == "10.00"
        assert error.threshold == "0.00"

    def test_run_exists_mentions_existing_run(self):
        error = ConsolidationRunExistsForPeriodError("g", "2024-Q1", "run-1")
        assert error.existing_run_id == "run-1"
        assert "run-1" in str(error)
