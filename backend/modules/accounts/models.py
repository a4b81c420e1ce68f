"""
Account and email claim data models.

These models define the data structures used by the accounts module
and exposed to other modules through the interface.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from shared.models import utc_now


def normalize_email(email: str) -> str:
    """Trimmed, lower-cased form of an email, used as the uniqueness key."""
    return (email or "").strip().lower()


class AccountRole(str, Enum):
    """Portal an account belongs to."""

    DEPENDENT = "dependent"
    MANAGER = "manager"


class AccountStatus(str, Enum):
    """Account lifecycle status. Accounts are deactivated, never deleted."""

    ACTIVE = "active"
    PENDING_VERIFICATION = "pending_verification"
    DISABLED = "disabled"


class AccountProfile(BaseModel):
    """
    Profile fields owned by the account holder.

    Dependents typically fill name / phone / age; managers add their
    specialty and professional registration.
    """

    full_name: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = Field(None, max_length=40)
    age: Optional[int] = Field(None, ge=0, le=150)
    specialty: Optional[str] = Field(None, max_length=200)
    professional_id: Optional[str] = Field(None, max_length=100)
    bio: Optional[str] = Field(None, max_length=2000)
    photo_url: Optional[str] = None

    def provided(self) -> dict:
        """Only the fields the caller actually set."""
        return self.model_dump(exclude_none=True)


class Account(BaseModel):
    """Application-level account stored at ``accounts/{id}``."""

    id: str = Field(..., description="Provider-issued account ID")
    normalized_email: str
    email: str = Field(..., description="Email as entered at signup")
    role: AccountRole
    status: AccountStatus = AccountStatus.ACTIVE
    manager_account_id: Optional[str] = Field(
        None, description="Managing account, set when a linking code is redeemed"
    )
    profile: AccountProfile = Field(default_factory=AccountProfile)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class EmailClaim(BaseModel):
    """Ledger entry stored at ``emailClaims/{normalized_email}``."""

    owner_account_id: str
    claimed_at: datetime = Field(default_factory=utc_now)


class ClaimOutcome(str, Enum):
    CLAIMED = "claimed"
    RECLAIMED = "reclaimed"
    CONFLICT = "conflict"


class ClaimResult(BaseModel):
    """Result of a ledger claim attempt."""

    outcome: ClaimOutcome
    normalized_email: str
    owner_account_id: str = Field(..., description="Owner after the attempt")
    previous_owner_id: Optional[str] = Field(
        None, description="Orphaned owner that was replaced, for RECLAIMED"
    )

    @property
    def succeeded(self) -> bool:
        return self.outcome != ClaimOutcome.CONFLICT


class SignupResult(BaseModel):
    """Account created (or merged) by a signup entry point."""

    account: Account
    claim_outcome: ClaimOutcome
    access_token: str = Field(default="", description="Identity token for the new session")
    refresh_token: str = ""


class SignInResult(BaseModel):
    """Account loaded by a password sign-in."""

    account: Account
    access_token: str = ""
    refresh_token: str = ""


class FederatedSignInStatus(str, Enum):
    SIGNED_IN = "signed_in"
    PENDING_COMPLETION = "pending_completion"


class FederatedSignInResult(BaseModel):
    """
    Result of a federated sign-in.

    SIGNED_IN carries the existing account. PENDING_COMPLETION means the
    provider authenticated the caller but no account exists yet; the
    prefilled email and display name go back to the client, which calls
    complete_federated_signup with them.
    """

    status: FederatedSignInStatus
    account_id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    account: Optional[Account] = None
    access_token: str = ""
    refresh_token: str = ""
