"""
Assignment endpoints.

Managers assign activities; completed sessions advance progress.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from shared.models import AuthenticatedUser
from modules.assignments.exceptions import AssignmentAccessError
from modules.assignments.interfaces import IAssignmentProgressTracker
from modules.assignments.models import Assignment, CompletionResult, SessionPayload

from ..dependencies import get_assignment_tracker
from ..middleware.auth import get_current_user

router = APIRouter()


class CreateAssignmentRequest(BaseModel):
    dependent_account_id: str = Field(..., min_length=1)
    activity_template_id: str = Field(..., min_length=1)


@router.post("", response_model=Assignment, status_code=201)
async def create_assignment(
    request: CreateAssignmentRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    tracker: IAssignmentProgressTracker = Depends(get_assignment_tracker),
) -> Assignment:
    """Assign an activity to a dependent linked to the calling manager."""
    return await tracker.create_assignment(
        user.id, request.dependent_account_id, request.activity_template_id
    )


@router.get("/{assignment_id}", response_model=Assignment)
async def get_assignment(
    assignment_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    tracker: IAssignmentProgressTracker = Depends(get_assignment_tracker),
) -> Assignment:
    assignment = await tracker.get_assignment(assignment_id)
    if user.id not in (assignment.dependent_account_id, assignment.assigner_account_id):
        raise AssignmentAccessError(user.id, assignment_id)
    return assignment


@router.post("/{assignment_id}/completions", response_model=CompletionResult, status_code=201)
async def record_completion(
    assignment_id: str,
    payload: SessionPayload,
    user: AuthenticatedUser = Depends(get_current_user),
    tracker: IAssignmentProgressTracker = Depends(get_assignment_tracker),
) -> CompletionResult:
    """
    Record one completed session.

    The session is stored even when the assignment does not exist; the
    response then has no assignment.
    """
    return await tracker.record_completion(assignment_id, payload, recorded_by=user.id)
