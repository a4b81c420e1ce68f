"""
Shared data models used across modules.

These models are shared infrastructure, not business logic.
Module-specific models should stay in their respective module directories.
"""

from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, Field


def utc_now() -> datetime:
    """Current time as an aware UTC datetime. Services take this as their default clock."""
    return datetime.now(timezone.utc)


class AuthenticatedUser(BaseModel):
    """
    Represents the caller of a request, as proven by their identity token.

    This model is populated from JWT claims and made available
    to route handlers via dependency injection. Account ids used by the
    engine always come from here, never from request bodies.
    """

    id: str = Field(..., description="Account ID issued by the identity provider")
    email: Optional[str] = Field(None, description="Email claimed in the token")
    email_verified: bool = Field(default=False, description="Whether email is verified")
    last_sign_in: Optional[datetime] = Field(None, description="Token issue time")

    model_config = {
        "frozen": True,
        "extra": "ignore",
    }
