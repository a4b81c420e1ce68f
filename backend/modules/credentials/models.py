"""
Credential gateway data models.

These models define the data structures used by the credential gateway
and exposed to other modules through the interface.
"""

from typing import Optional
from pydantic import BaseModel, Field


class TokenPayload(BaseModel):
    """
    Decoded identity token payload.

    This matches the structure of Supabase Auth JWTs; the in-memory
    gateway issues tokens with the same claims.
    """

    sub: str = Field(..., description="Subject (account ID)")
    email: Optional[str] = Field(None, description="Account email")
    email_confirmed_at: Optional[str] = Field(None, description="Email confirmation time")
    exp: int = Field(..., description="Expiration timestamp")
    iat: int = Field(..., description="Issued at timestamp")
    aud: str = Field(default="authenticated", description="Audience")
    role: str = Field(default="authenticated", description="Token role")

    app_metadata: dict = Field(default_factory=dict)
    user_metadata: dict = Field(default_factory=dict)


class CredentialSession(BaseModel):
    """
    A signed-in provider session.

    Returned by every sign-in / account-creation call. Refreshing the
    credential updates the tokens in place.
    """

    account_id: str = Field(..., description="Provider-issued account ID")
    email: Optional[str] = Field(None, description="Email reported by the provider")
    display_name: Optional[str] = Field(None, description="Display name from the provider")
    provider: str = Field(default="email", description="Sign-in method, e.g. email or google")
    email_verified: bool = Field(default=False)
    access_token: str = Field(default="", description="Current identity token")
    refresh_token: str = Field(default="", description="Token used to mint new identity tokens")


class ProviderIdentity(BaseModel):
    """Identity of a session holder as verified by the provider."""

    account_id: str
    email: Optional[str] = None
    email_verified: bool = False
    provider: str = "email"

    model_config = {"frozen": True}
