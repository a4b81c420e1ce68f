"""
Assignment progress tracker.

Each completed session first lands in the ``sessions`` history, then bumps
its assignment's progress by a fixed increment (capped at 100) in one
read-modify-write transaction. Conflicting concurrent completions retry
against the fresh progress value, so no increment is lost.
"""

import logging
import uuid
from datetime import datetime
from typing import Callable, Optional

from shared.audit import AuditLog
from shared.config import get_settings
from shared.documents import IDocumentStore, Transaction
from shared.models import utc_now
from shared.repository import BaseRepository
from shared.retry import RetryPolicy, run_with_retry

from modules.accounts.exceptions import AccountNotFoundError
from modules.accounts.models import AccountRole
from modules.accounts.repository import AccountRepository

from .exceptions import AssignmentAccessError, AssignmentNotFoundError, DependentNotManagedError
from .models import (
    MAX_PROGRESS,
    Assignment,
    CompletionResult,
    SessionPayload,
    SessionRecord,
    derive_state,
)

logger = logging.getLogger(__name__)

ASSIGNMENTS_COLLECTION = "assignments"
SESSIONS_COLLECTION = "sessions"


class AssignmentRepository(BaseRepository[Assignment]):
    collection = ASSIGNMENTS_COLLECTION
    model = Assignment


def _new_id() -> str:
    return uuid.uuid4().hex


class AssignmentProgressTracker:
    """
    Creates assignments and advances their progress from completed sessions.

    Progress only ever grows, and state is derived from it on every write.
    """

    def __init__(
        self,
        store: IDocumentStore,
        policy: Optional[RetryPolicy] = None,
        audit: Optional[AuditLog] = None,
        clock: Callable[[], datetime] = utc_now,
        increment: Optional[int] = None,
        id_factory: Callable[[], str] = _new_id,
    ):
        self._store = store
        self._policy = policy or RetryPolicy.from_settings()
        self._assignments = AssignmentRepository(store)
        self._accounts = AccountRepository(store)
        self._audit = audit or AuditLog(store, clock)
        self._clock = clock
        self._increment = increment if increment is not None else get_settings().progress_increment
        self._id_factory = id_factory

    async def create_assignment(
        self,
        assigner_account_id: str,
        dependent_account_id: str,
        activity_template_id: str,
    ) -> Assignment:
        dependent = await run_with_retry(
            lambda: self._accounts.get(dependent_account_id),
            policy=self._policy,
            operation_name="assignment_dependent_read",
        )
        if dependent is None:
            raise AccountNotFoundError(dependent_account_id)
        if (
            dependent.role != AccountRole.DEPENDENT
            or dependent.manager_account_id != assigner_account_id
        ):
            raise DependentNotManagedError(assigner_account_id, dependent_account_id)

        now = self._clock()
        assignment = Assignment(
            id=self._id_factory(),
            dependent_account_id=dependent_account_id,
            activity_template_id=activity_template_id,
            assigner_account_id=assigner_account_id,
            created_at=now,
            updated_at=now,
        )
        document = self._assignments.to_document(assignment)
        # Fixed id makes a retried append land on the same document
        await run_with_retry(
            lambda: self._store.append(ASSIGNMENTS_COLLECTION, document, doc_id=assignment.id),
            policy=self._policy,
            operation_name="assignment_create",
        )

        logger.info(
            "Assignment %s created for %s by %s",
            assignment.id, dependent_account_id, assigner_account_id,
        )
        return assignment

    async def get_assignment(self, assignment_id: str) -> Assignment:
        assignment = await run_with_retry(
            lambda: self._assignments.get(assignment_id),
            policy=self._policy,
            operation_name="assignment_read",
        )
        if assignment is None:
            raise AssignmentNotFoundError(assignment_id)
        return assignment

    async def record_completion(
        self,
        assignment_id: str,
        payload: SessionPayload,
        recorded_by: Optional[str] = None,
    ) -> CompletionResult:
        if recorded_by is not None:
            await self._check_access(assignment_id, recorded_by)

        # 1. History first; it survives even if the progress update fails.
        session_id = self._id_factory()
        now = self._clock()
        record = SessionRecord(
            id=session_id,
            assignment_id=assignment_id,
            recorded_by=recorded_by,
            duration_seconds=payload.duration_seconds,
            completed_at=payload.completed_at or now,
            notes=payload.notes,
            metadata=payload.metadata,
            recorded_at=now,
        )
        document = record.model_dump(mode="json")
        await run_with_retry(
            lambda: self._store.append(SESSIONS_COLLECTION, document, doc_id=session_id),
            policy=self._policy,
            operation_name="session_append",
        )

        # 2. Bounded progress bump against a fresh read.
        key = self._assignments.key(assignment_id)

        async def write(tx: Transaction) -> Optional[Assignment]:
            data = tx.snapshot[key]
            if data is None:
                return None
            current = self._assignments.to_model(data)
            progress = max(current.progress, min(MAX_PROGRESS, current.progress + self._increment))
            state = derive_state(progress)
            updated_at = self._clock()
            tx.set(
                key,
                {"progress": progress, "state": state.value, "updated_at": updated_at.isoformat()},
                merge=True,
            )
            return current.model_copy(
                update={"progress": progress, "state": state, "updated_at": updated_at}
            )

        result = await run_with_retry(
            lambda: self._store.transact([key], write),
            policy=self._policy,
            operation_name="assignment_progress",
        )
        assignment = result.value

        if assignment is None:
            logger.warning(
                "Session %s recorded for missing assignment %s; progress not updated",
                session_id, assignment_id,
            )
        else:
            logger.info(
                "Assignment %s progress now %d (%s)",
                assignment_id, assignment.progress, assignment.state.value,
            )

        await self._audit.record(
            actor_id=recorded_by or "system",
            action="session.completed",
            entity=SESSIONS_COLLECTION,
            entity_id=session_id,
            data={
                "assignment_id": assignment_id,
                "progress": assignment.progress if assignment else None,
            },
        )
        return CompletionResult(session_id=session_id, assignment=assignment)

    async def _check_access(self, assignment_id: str, account_id: str) -> None:
        assignment = await run_with_retry(
            lambda: self._assignments.get(assignment_id),
            policy=self._policy,
            operation_name="assignment_read",
        )
        if assignment is None:
            return
        if account_id not in (assignment.dependent_account_id, assignment.assigner_account_id):
            raise AssignmentAccessError(account_id, assignment_id)
