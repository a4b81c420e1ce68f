"""
Assignments module interfaces.
"""

from typing import Optional, Protocol, runtime_checkable

from .models import Assignment, CompletionResult, SessionPayload


@runtime_checkable
class IAssignmentProgressTracker(Protocol):
    """Interface for assignment creation and progress updates."""

    async def create_assignment(
        self,
        assigner_account_id: str,
        dependent_account_id: str,
        activity_template_id: str,
    ) -> Assignment:
        """
        Assign an activity to a dependent managed by the assigner.

        Raises:
            DependentNotManagedError
        """
        ...

    async def get_assignment(self, assignment_id: str) -> Assignment:
        """
        Raises:
            AssignmentNotFoundError
        """
        ...

    async def record_completion(
        self,
        assignment_id: str,
        payload: SessionPayload,
        recorded_by: Optional[str] = None,
    ) -> CompletionResult:
        """
        Append the session record, then advance the assignment's progress.

        A missing assignment is not an error: the session stays recorded and
        the result carries no assignment.
        """
        ...
