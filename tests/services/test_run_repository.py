"""
Tests for ConsolidationRunRepository row handling.

Covers:
- Row-locked run loads
- A cancellation request survives a save of an earlier read
- Lock removal reports a claim lost to another transaction
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from consolidation_kernel.db.engine import session_scope
from consolidation_kernel.exceptions import (
    ConsolidationRunExistsForPeriodError,
    ConsolidationRunNotFoundError,
)
from consolidation_kernel.models import RunStatus
from consolidation_services import RunFlags
from consolidation_services.run_repository import ConsolidationRunRepository

AS_OF = date(2024, 3, 31)
PERIOD = "2024-Q1"


@pytest.fixture
def pending_run(orchestrator, group_service, usd_group, subsidiary_id, test_actor_id):
    group_service.add_member(usd_group.id, subsidiary_id, Decimal("100"), test_actor_id)
    return orchestrator.create_run(usd_group.id, PERIOD, AS_OF, test_actor_id)


class TestRunRows:
    def test_get_model_for_update(self, session_factory, pending_run):
        with session_scope(session_factory) as session:
            model = ConsolidationRunRepository(session).get_model_for_update(pending_run.id)
            assert model.id == pending_run.id
            assert model.status == RunStatus.PENDING.value

    def test_get_model_for_update_unknown_run(self, session_factory, pending_run):
        with pytest.raises(ConsolidationRunNotFoundError):
            with session_scope(session_factory) as session:
                ConsolidationRunRepository(session).get_model_for_update(uuid4())

    def test_save_keeps_cancel_request(self, session_factory, orchestrator, pending_run):
        # A DTO read before the cancellation request was recorded.
        before = orchestrator.get_run(pending_run.id)
        with session_scope(session_factory) as session:
            repo = ConsolidationRunRepository(session)
            model = repo.get_model_for_update(pending_run.id)
            model.cancel_requested = True

        with session_scope(session_factory) as session:
            repo = ConsolidationRunRepository(session)
            model = repo.get_model_for_update(pending_run.id)
            repo.save(model, replace(before, status=RunStatus.IN_PROGRESS))

        after = orchestrator.get_run(pending_run.id)
        assert after.status == RunStatus.IN_PROGRESS
        assert after.cancel_requested


class TestPeriodLock:
    def test_remove_lock_reports_lost_claim(self, session_factory, pending_run):
        with session_scope(session_factory) as first:
            first_repo = ConsolidationRunRepository(first)
            lock = first_repo.find_lock(pending_run.group_id, PERIOD)

            with session_scope(session_factory) as second:
                second_repo = ConsolidationRunRepository(second)
                assert second_repo.remove_lock(second_repo.find_lock(pending_run.group_id, PERIOD))

            assert not first_repo.remove_lock(lock)

    def test_lost_claim_during_regeneration(
        self, monkeypatch, orchestrator, pending_run, test_actor_id,
    ):
        monkeypatch.setattr(ConsolidationRunRepository, "remove_lock", lambda self, lock: False)

        with pytest.raises(ConsolidationRunExistsForPeriodError):
            orchestrator.create_run(
                pending_run.group_id, PERIOD, AS_OF, test_actor_id,
                flags=RunFlags(force_regeneration=True),
            )

        # The supersession rolled back with the failed claim.
        held = orchestrator.get_run(pending_run.id)
        assert held.status == RunStatus.PENDING
        assert held.superseded_by_run_id is None
        assert [r.id for r in orchestrator.list_runs(pending_run.group_id, PERIOD)] == [
            pending_run.id,
        ]
