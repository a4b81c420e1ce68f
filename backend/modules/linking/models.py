"""
Linking code data models.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class LinkingCode(BaseModel):
    """
    Stored at ``linkingCodes/{digest}``. The plaintext is never stored.

    ``used`` goes from False to True exactly once.
    """

    owner_account_id: str = Field(..., description="Dependent who generated the code")
    created_at: datetime
    expires_at: datetime
    used: bool = False
    used_by_account_id: Optional[str] = None
    used_at: Optional[datetime] = None
    attempts: int = Field(default=0, ge=0, description="Reserved for rate limiting")

    def is_redeemable(self, now: datetime) -> bool:
        return not self.used and now <= self.expires_at


class GeneratedCode(BaseModel):
    """Plaintext code handed to the dependent once."""

    code: str
    expires_at: datetime


class RosterEntry(BaseModel):
    """Stored at ``managers/{managerId}/roster/{dependentId}``."""

    dependent_account_id: str
    linked_at: datetime


class LinkResult(BaseModel):
    """Management relationship established by a redemption."""

    manager_account_id: str
    dependent_account_id: str
    linked_at: datetime
