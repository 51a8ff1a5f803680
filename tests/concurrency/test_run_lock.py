"""
Concurrency tests for the per-period run lock.

Covers:
- Racing create_run calls for one (group, period): exactly one wins
- Racing create_run calls for distinct periods: all succeed

In-memory SQLite shares one connection across threads, so these tests
run against a SQLite file (or DATABASE_URL when it names a server).
"""

import os
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from consolidation_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from consolidation_kernel.exceptions import ConsolidationRunExistsForPeriodError
from consolidation_kernel.models import RunStatus
from consolidation_modules.group.service import GroupService
from consolidation_services import ConsolidationOrchestrator
from tests.factories import FakeIntercompanyProvider, FakeRateResolver, FakeTrialBalanceProvider

AS_OF = date(2024, 3, 31)
THREADS = 5

pytestmark = pytest.mark.slow_locks


@pytest.fixture
def file_engine(tmp_path):
    url = os.environ.get("DATABASE_URL", "sqlite://")
    if url.startswith("sqlite"):
        url = f"sqlite:///{tmp_path / 'runs.db'}"
    engine = init_engine_from_url(url)
    create_tables()
    yield engine
    drop_tables()
    reset_engine()


@pytest.fixture
def threaded_orchestrator(file_engine):
    return ConsolidationOrchestrator(
        session_factory=get_session_factory(),
        rate_resolver=FakeRateResolver(),
        trial_balance_provider=FakeTrialBalanceProvider(),
        intercompany_provider=FakeIntercompanyProvider(),
    )


@pytest.fixture
def group_id(file_engine):
    actor = uuid4()
    with session_scope(get_session_factory()) as session:
        service = GroupService(session)
        group = service.create_group(uuid4(), "Race Holdings", "USD", uuid4(), actor)
        service.add_member(group.id, uuid4(), Decimal("100"), actor)
    return group.id


def _race(fn, count):
    """Call ``fn(index)`` from ``count`` threads released together."""
    barrier = threading.Barrier(count)

    def _call(index):
        barrier.wait()
        try:
            return fn(index), None
        except Exception as exc:
            return None, exc

    with ThreadPoolExecutor(max_workers=count) as pool:
        return list(pool.map(_call, range(count)))


class TestRunLock:
    def test_one_run_per_period(self, threaded_orchestrator, group_id):
        actor = uuid4()
        results = _race(
            lambda _: threaded_orchestrator.create_run(group_id, "2024-Q1", AS_OF, actor),
            THREADS,
        )

        created = [run for run, exc in results if exc is None]
        errors = [exc for _, exc in results if exc is not None]
        assert len(created) == 1
        assert len(errors) == THREADS - 1
        assert all(isinstance(e, ConsolidationRunExistsForPeriodError) for e in errors)

        runs = threaded_orchestrator.list_runs(group_id, "2024-Q1")
        assert [r.id for r in runs] == [created[0].id]
        assert runs[0].status == RunStatus.PENDING

    def test_distinct_periods_do_not_contend(self, threaded_orchestrator, group_id):
        actor = uuid4()
        results = _race(
            lambda i: threaded_orchestrator.create_run(group_id, f"2024-M{i + 1:02d}", AS_OF, actor),
            THREADS,
        )
        assert all(exc is None for _, exc in results)
        assert len({run.id for run, _ in results}) == THREADS
