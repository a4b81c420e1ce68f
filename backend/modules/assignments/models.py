"""
Assignment and session data models.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

from shared.models import utc_now

MAX_PROGRESS = 100


class AssignmentState(str, Enum):
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


def derive_state(progress: int) -> AssignmentState:
    """State is a pure function of progress."""
    if progress <= 0:
        return AssignmentState.ASSIGNED
    if progress >= MAX_PROGRESS:
        return AssignmentState.COMPLETED
    return AssignmentState.IN_PROGRESS


class Assignment(BaseModel):
    """
    Stored at ``assignments/{id}``.

    ``state`` is always recomputed from ``progress`` on load, so a stored
    document can never present an inconsistent pair.
    """

    id: str
    dependent_account_id: str
    activity_template_id: str
    assigner_account_id: str
    progress: int = Field(default=0, ge=0, le=MAX_PROGRESS)
    state: AssignmentState = AssignmentState.ASSIGNED
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def _state_follows_progress(self) -> "Assignment":
        self.state = derive_state(self.progress)
        return self


class SessionPayload(BaseModel):
    """What the client reports about one completed activity instance."""

    duration_seconds: Optional[int] = Field(None, ge=0)
    completed_at: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=2000)
    metadata: dict[str, Any] = Field(default_factory=dict)


class SessionRecord(BaseModel):
    """Immutable history record stored at ``sessions/{id}``."""

    id: str
    assignment_id: str
    recorded_by: Optional[str] = None
    duration_seconds: Optional[int] = None
    completed_at: datetime
    notes: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    recorded_at: datetime


class CompletionResult(BaseModel):
    """
    Outcome of recording a completion.

    ``assignment`` is None when the session was recorded against an
    assignment that does not exist.
    """

    session_id: str
    assignment: Optional[Assignment] = None
