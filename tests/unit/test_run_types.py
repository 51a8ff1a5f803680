"""
Tests for the run and step transition tables and run DTOs.
"""

from datetime import UTC, datetime
from uuid import uuid4

import pytest

from consolidation_kernel.exceptions import (
    InvalidRunTransitionError,
    InvalidStepTransitionError,
)
from consolidation_kernel.models import RunStatus, StepName, StepStatus
from consolidation_services._run_types import (
    CANCELLABLE,
    DELETABLE,
    RUN_TRANSITIONS,
    StepRecord,
    initial_steps,
    validate_run_transition,
)


class TestRunTransitions:
    @pytest.mark.parametrize(
        "current, target",
        [
            (RunStatus.PENDING, RunStatus.IN_PROGRESS),
            (RunStatus.PENDING, RunStatus.CANCELLED),
            (RunStatus.IN_PROGRESS, RunStatus.COMPLETED),
            (RunStatus.IN_PROGRESS, RunStatus.FAILED),
            (RunStatus.IN_PROGRESS, RunStatus.CANCELLED),
        ],
    )
    def test_allowed(self, current, target):
        validate_run_transition(uuid4(), current, target)

    @pytest.mark.parametrize(
        "current, target",
        [
            (RunStatus.PENDING, RunStatus.COMPLETED),
            (RunStatus.PENDING, RunStatus.FAILED),
            (RunStatus.COMPLETED, RunStatus.IN_PROGRESS),
            (RunStatus.FAILED, RunStatus.PENDING),
            (RunStatus.CANCELLED, RunStatus.IN_PROGRESS),
        ],
    )
    def test_rejected(self, current, target):
        with pytest.raises(InvalidRunTransitionError) as exc_info:
            validate_run_transition(uuid4(), current, target)
        assert exc_info.value.from_status == current.value
        assert exc_info.value.to_status == target.value

    def test_terminal_states_have_no_exits(self):
        for status in RunStatus:
            assert (not RUN_TRANSITIONS[status]) == status.is_terminal

    def test_cancellable_and_deletable(self):
        assert CANCELLABLE == {RunStatus.PENDING, RunStatus.IN_PROGRESS}
        assert DELETABLE == {RunStatus.PENDING, RunStatus.FAILED}


class TestStepRecord:
    def test_initial_steps_in_pipeline_order(self):
        steps = initial_steps()
        assert [s.name for s in steps] == [
            StepName.COLLECTING,
            StepName.TRANSLATING,
            StepName.ELIMINATING,
            StepName.AGGREGATING,
            StepName.VALIDATING,
        ]
        assert all(s.status == StepStatus.NOT_STARTED for s in steps)

    def test_transition_applies_changes(self):
        started = datetime(2024, 4, 1, tzinfo=UTC)
        record = StepRecord(StepName.COLLECTING).transition(
            uuid4(), StepStatus.IN_PROGRESS, started_at=started,
        )
        assert record.status == StepStatus.IN_PROGRESS
        assert record.started_at == started

    def test_not_started_cannot_succeed(self):
        with pytest.raises(InvalidStepTransitionError):
            StepRecord(StepName.COLLECTING).transition(uuid4(), StepStatus.SUCCEEDED)

    def test_skipped_is_final(self):
        record = StepRecord(StepName.VALIDATING).transition(uuid4(), StepStatus.SKIPPED)
        with pytest.raises(InvalidStepTransitionError):
            record.transition(uuid4(), StepStatus.IN_PROGRESS)

    def test_dict_round_trip_keeps_timing_and_details(self):
        record = StepRecord(
            name=StepName.TRANSLATING,
            status=StepStatus.SUCCEEDED,
            started_at=datetime(2024, 4, 1, 9, 0, tzinfo=UTC),
            completed_at=datetime(2024, 4, 1, 9, 0, 1, tzinfo=UTC),
            duration_ms=1000,
            details={"rate_count": 2},
        )
        assert StepRecord.from_dict(record.to_dict()) == record
