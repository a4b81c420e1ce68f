"""
Assignments module exceptions.
"""

from shared.exceptions import AuthorizationError, NotFoundError


class AssignmentNotFoundError(NotFoundError):
    """Raised when an assignment does not exist."""

    def __init__(self, assignment_id: str):
        super().__init__(
            f"Assignment not found: {assignment_id}",
            code="ASSIGNMENT_NOT_FOUND",
            details={"assignment_id": assignment_id},
        )


class DependentNotManagedError(AuthorizationError):
    """Raised when a manager assigns work to a dependent it does not manage."""

    def __init__(self, manager_account_id: str, dependent_account_id: str):
        super().__init__(
            "This dependent is not linked to you",
            code="DEPENDENT_NOT_MANAGED",
            details={
                "manager_account_id": manager_account_id,
                "dependent_account_id": dependent_account_id,
            },
        )


class AssignmentAccessError(AuthorizationError):
    """Raised when a caller records a session on someone else's assignment."""

    def __init__(self, account_id: str, assignment_id: str):
        super().__init__(
            "You cannot record sessions for this assignment",
            code="ASSIGNMENT_ACCESS_DENIED",
            details={"account_id": account_id, "assignment_id": assignment_id},
        )
