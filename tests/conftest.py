"""
Pytest fixtures for the consolidation test suite.

Provides:
- Database engine, sessions and session factory (fresh schema per test)
- Deterministic clock and the bundled consolidation configuration
- Captured structured logs
- A parent / subsidiary group wired to collaborator doubles

Environment Variables:
- DATABASE_URL: SQLAlchemy URL of the test database. Defaults to an
  in-memory SQLite database; set it to a PostgreSQL URL to run the suite
  against PostgreSQL.
"""

import json
import logging
import os
from collections.abc import Generator
from datetime import UTC, date, datetime, timedelta
from io import StringIO
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session

from consolidation_config import ConsolidationConfig, get_active_config
from consolidation_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from consolidation_kernel.domain.clock import DeterministicClock
from consolidation_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from consolidation_modules.elimination.service import EliminationRuleService
from consolidation_modules.group.service import GroupService
from consolidation_services.orchestrator import ConsolidationOrchestrator
from tests.factories import (
    FakeIntercompanyProvider,
    FakeRateResolver,
    FakeTrialBalanceProvider,
)

DEFAULT_DATABASE_URL = "sqlite://"

AS_OF = date(2024, 3, 31)
PERIOD = "2024-Q1"


def get_database_url() -> str:
    """Get database URL from environment, or use in-memory SQLite."""
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow_locks: mark test as potentially waiting for DB locks"
    )


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture consolidation logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, orchestrator):
            orchestrator.initiate(...)
            logs = captured_logs()
            assert any(r["message"] == "consolidation_run_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("consolidation")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def db_engine():
    """Engine with a freshly created schema, dropped again at teardown."""
    engine = init_engine_from_url(get_database_url())
    create_tables()
    yield engine
    drop_tables()
    reset_engine()


@pytest.fixture
def session(db_engine) -> Generator[Session, None, None]:
    session = get_session()
    yield session
    session.close()


@pytest.fixture
def session_factory(db_engine):
    return get_session_factory()


# =============================================================================
# Domain fixtures
# =============================================================================


@pytest.fixture
def test_actor_id() -> UUID:
    return uuid4()


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(
        datetime(2024, 4, 2, 9, 0, 0, tzinfo=UTC), step=timedelta(milliseconds=250),
    )


@pytest.fixture
def consolidation_config() -> ConsolidationConfig:
    return get_active_config()


@pytest.fixture
def parent_id() -> UUID:
    return uuid4()


@pytest.fixture
def subsidiary_id() -> UUID:
    return uuid4()


@pytest.fixture
def group_service(session) -> GroupService:
    return GroupService(session)


@pytest.fixture
def rule_service(session) -> EliminationRuleService:
    return EliminationRuleService(session)


@pytest.fixture
def usd_group(group_service, parent_id, test_actor_id):
    """An active USD group with no members yet."""
    return group_service.create_group(
        organization_id=uuid4(),
        name="Acme Holdings",
        reporting_currency="USD",
        parent_company_id=parent_id,
        actor_id=test_actor_id,
    )


@pytest.fixture
def rate_resolver() -> FakeRateResolver:
    return FakeRateResolver()


@pytest.fixture
def trial_balances() -> FakeTrialBalanceProvider:
    return FakeTrialBalanceProvider()


@pytest.fixture
def intercompany() -> FakeIntercompanyProvider:
    return FakeIntercompanyProvider()


@pytest.fixture
def orchestrator(
    session_factory,
    rate_resolver,
    trial_balances,
    intercompany,
    deterministic_clock,
    consolidation_config,
) -> ConsolidationOrchestrator:
    return ConsolidationOrchestrator(
        session_factory=session_factory,
        rate_resolver=rate_resolver,
        trial_balance_provider=trial_balances,
        intercompany_provider=intercompany,
        clock=deterministic_clock,
        config=consolidation_config,
    )
