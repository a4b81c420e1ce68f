"""
Assignments module.

Assignments of activities from a manager to a dependent, and the tracker
that turns completed sessions into bounded, monotonic progress.

Public API:
- IAssignmentProgressTracker / AssignmentProgressTracker
- Assignment, AssignmentState, derive_state: Assignment data
- SessionPayload, SessionRecord, CompletionResult: Session data
"""

from .interfaces import IAssignmentProgressTracker
from .models import (
    MAX_PROGRESS,
    Assignment,
    AssignmentState,
    CompletionResult,
    SessionPayload,
    SessionRecord,
    derive_state,
)
from .exceptions import AssignmentAccessError, AssignmentNotFoundError, DependentNotManagedError
from .service import (
    ASSIGNMENTS_COLLECTION,
    SESSIONS_COLLECTION,
    AssignmentProgressTracker,
    AssignmentRepository,
)

__all__ = [
    "IAssignmentProgressTracker",
    "MAX_PROGRESS",
    "Assignment",
    "AssignmentState",
    "CompletionResult",
    "SessionPayload",
    "SessionRecord",
    "derive_state",
    "AssignmentAccessError",
    "AssignmentNotFoundError",
    "DependentNotManagedError",
    "ASSIGNMENTS_COLLECTION",
    "SESSIONS_COLLECTION",
    "AssignmentProgressTracker",
    "AssignmentRepository",
]
