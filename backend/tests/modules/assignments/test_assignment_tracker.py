"""Tests for the assignment progress tracker."""

import asyncio
from datetime import datetime, timezone

import pytest
import pytest_asyncio

from shared.exceptions import StoreUnavailableError
from modules.accounts.exceptions import AccountNotFoundError
from modules.assignments.exceptions import (
    AssignmentAccessError,
    AssignmentNotFoundError,
    DependentNotManagedError,
)
from modules.assignments.interfaces import IAssignmentProgressTracker
from modules.assignments.models import (
    Assignment,
    AssignmentState,
    SessionPayload,
    derive_state,
)
from modules.assignments.service import AssignmentProgressTracker


@pytest_asyncio.fixture
async def linked(seed):
    """Manager mgr-1 linked to dependent dep-1."""
    await seed("mgr-1", role="manager")
    await seed("dep-1", manager_account_id="mgr-1")


async def set_progress(store, assignment: Assignment, progress: int) -> None:
    document = assignment.model_copy(update={"progress": progress}).model_dump(mode="json")
    await store.append("assignments", document, doc_id=assignment.id)


class TestDeriveState:
    def test_states(self):
        assert derive_state(0) == AssignmentState.ASSIGNED
        assert derive_state(1) == AssignmentState.IN_PROGRESS
        assert derive_state(99) == AssignmentState.IN_PROGRESS
        assert derive_state(100) == AssignmentState.COMPLETED

    def test_model_recomputes_state(self):
        """A stored state that disagrees with progress is corrected on load."""
        assignment = Assignment.model_validate(
            {
                "id": "a1",
                "dependent_account_id": "dep-1",
                "activity_template_id": "walk",
                "assigner_account_id": "mgr-1",
                "progress": 100,
                "state": "assigned",
            }
        )
        assert assignment.state == AssignmentState.COMPLETED


class TestCreateAssignment:
    def test_implements_interface(self, tracker):
        assert isinstance(tracker, IAssignmentProgressTracker)

    @pytest.mark.asyncio
    async def test_create_for_managed_dependent(self, tracker, linked, store):
        assignment = await tracker.create_assignment("mgr-1", "dep-1", "walk-10")

        assert assignment.progress == 0
        assert assignment.state == AssignmentState.ASSIGNED
        stored = await tracker.get_assignment(assignment.id)
        assert stored == assignment
        assert store.keys("assignments/") == [f"assignments/{assignment.id}"]

    @pytest.mark.asyncio
    async def test_unlinked_dependent_rejected(self, tracker, linked, seed):
        await seed("mgr-2", role="manager")
        with pytest.raises(DependentNotManagedError):
            await tracker.create_assignment("mgr-2", "dep-1", "walk-10")

    @pytest.mark.asyncio
    async def test_missing_dependent(self, tracker):
        with pytest.raises(AccountNotFoundError):
            await tracker.create_assignment("mgr-1", "ghost", "walk-10")

    @pytest.mark.asyncio
    async def test_get_missing_assignment(self, tracker):
        with pytest.raises(AssignmentNotFoundError):
            await tracker.get_assignment("nope")


class TestRecordCompletion:
    @pytest.mark.asyncio
    async def test_advances_progress(self, tracker, linked, store, clock):
        """One completion adds the increment and stores a session record."""
        assignment = await tracker.create_assignment("mgr-1", "dep-1", "walk-10")

        result = await tracker.record_completion(
            assignment.id, SessionPayload(duration_seconds=600, notes="felt good"), recorded_by="dep-1"
        )

        assert result.assignment.progress == 20
        assert result.assignment.state == AssignmentState.IN_PROGRESS
        session = await store.get(f"sessions/{result.session_id}")
        assert session["assignment_id"] == assignment.id
        assert session["recorded_by"] == "dep-1"
        assert session["duration_seconds"] == 600
        assert datetime.fromisoformat(session["completed_at"].replace("Z", "+00:00")) == clock.now

    @pytest.mark.asyncio
    async def test_progress_capped_at_100(self, tracker, linked, store):
        """90 + 20 caps at 100 and completes the assignment."""
        assignment = await tracker.create_assignment("mgr-1", "dep-1", "walk-10")
        await set_progress(store, assignment, 90)

        result = await tracker.record_completion(assignment.id, SessionPayload())

        assert result.assignment.progress == 100
        assert result.assignment.state == AssignmentState.COMPLETED
        stored = await tracker.get_assignment(assignment.id)
        assert stored.progress == 100
        assert stored.state == AssignmentState.COMPLETED

    @pytest.mark.asyncio
    async def test_completed_assignment_stays_at_100(self, tracker, linked, store):
        assignment = await tracker.create_assignment("mgr-1", "dep-1", "walk-10")
        await set_progress(store, assignment, 100)

        result = await tracker.record_completion(assignment.id, SessionPayload())

        assert result.assignment.progress == 100
        assert len(store.keys("sessions/")) == 1

    @pytest.mark.asyncio
    async def test_concurrent_completions_not_lost(self, tracker, linked, store):
        """Two concurrent completions from 0 end at 40."""
        assignment = await tracker.create_assignment("mgr-1", "dep-1", "walk-10")

        await asyncio.gather(
            tracker.record_completion(assignment.id, SessionPayload()),
            tracker.record_completion(assignment.id, SessionPayload()),
        )

        stored = await tracker.get_assignment(assignment.id)
        assert stored.progress == 40
        assert len(store.keys("sessions/")) == 2

    @pytest.mark.asyncio
    async def test_missing_assignment_still_records_session(self, tracker, store):
        """A completion for a missing assignment stores the session and no assignment."""
        result = await tracker.record_completion("gone", SessionPayload(duration_seconds=30))

        assert result.assignment is None
        assert store.keys("sessions/") == [f"sessions/{result.session_id}"]
        assert store.keys("assignments/") == []

    @pytest.mark.asyncio
    async def test_outsider_rejected(self, tracker, linked, seed, store):
        assignment = await tracker.create_assignment("mgr-1", "dep-1", "walk-10")
        await seed("dep-2")

        with pytest.raises(AssignmentAccessError):
            await tracker.record_completion(assignment.id, SessionPayload(), recorded_by="dep-2")

        assert store.keys("sessions/") == []

    @pytest.mark.asyncio
    async def test_session_kept_when_progress_update_fails(
        self, flaky_store, linked, policy, clock, store
    ):
        """The session record survives a failed progress update."""
        tracker = AssignmentProgressTracker(flaky_store, policy=policy, clock=clock, increment=20)
        assignment = await tracker.create_assignment("mgr-1", "dep-1", "walk-10")
        flaky_store.fail_next("transact", StoreUnavailableError(), times=policy.max_attempts)

        with pytest.raises(StoreUnavailableError):
            await tracker.record_completion(assignment.id, SessionPayload())

        assert len(store.keys("sessions/")) == 1
        assert (await tracker.get_assignment(assignment.id)).progress == 0

    @pytest.mark.asyncio
    async def test_fixed_ids(self, store, linked, policy, clock):
        ids = iter(["asg-1", "ses-1"])
        tracker = AssignmentProgressTracker(
            store, policy=policy, clock=clock, increment=20, id_factory=lambda: next(ids)
        )

        assignment = await tracker.create_assignment("mgr-1", "dep-1", "walk-10")
        result = await tracker.record_completion(
            assignment.id,
            SessionPayload(completed_at=datetime(2026, 3, 1, tzinfo=timezone.utc)),
        )

        assert assignment.id == "asg-1"
        assert result.session_id == "ses-1"
        entries = [await store.get(key) for key in store.keys("auditLog/")]
        assert any(e["action"] == "session.completed" and e["actor_id"] == "system" for e in entries)
