"""
Account endpoints.

Signup, sign-in (password and federated) and the caller's own account.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field

from shared.models import AuthenticatedUser
from modules.accounts.interfaces import IAccountReconciler
from modules.accounts.models import (
    Account,
    AccountProfile,
    AccountRole,
    FederatedSignInResult,
    SignInResult,
    SignupResult,
)
from modules.credentials.models import CredentialSession

from ..dependencies import get_account_reconciler
from ..middleware.auth import get_bearer_token, get_current_user

router = APIRouter()


class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    role: AccountRole
    profile: AccountProfile = Field(default_factory=AccountProfile)


class SignInRequest(BaseModel):
    email: EmailStr
    password: str
    expected_role: Optional[AccountRole] = None


class FederatedBeginRequest(BaseModel):
    provider: str = Field(default="google")
    id_token: str
    expected_role: Optional[AccountRole] = None


class FederatedRedirectRequest(BaseModel):
    auth_code: str
    code_verifier: str = ""
    expected_role: Optional[AccountRole] = None


class FederatedCompleteRequest(BaseModel):
    """Finishes a PENDING_COMPLETION sign-in; the caller's bearer token is the session."""

    claimed_email: EmailStr
    role: AccountRole
    profile: AccountProfile = Field(default_factory=AccountProfile)
    refresh_token: str = ""


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordResetResponse(BaseModel):
    status: str = "sent"


@router.post("/signup", response_model=SignupResult, status_code=201)
async def signup(
    request: SignupRequest,
    reconciler: IAccountReconciler = Depends(get_account_reconciler),
) -> SignupResult:
    """Create a password account. 409 if the email is already registered."""
    return await reconciler.signup_direct(
        request.email, request.password, request.role, request.profile
    )


@router.post("/signin", response_model=SignInResult)
async def sign_in(
    request: SignInRequest,
    reconciler: IAccountReconciler = Depends(get_account_reconciler),
) -> SignInResult:
    """
    Sign in with email and password.

    With ``expected_role`` set, accounts from the other portal are rejected.
    """
    return await reconciler.sign_in(request.email, request.password, request.expected_role)


@router.post("/federated/begin", response_model=FederatedSignInResult)
async def begin_federated(
    request: FederatedBeginRequest,
    reconciler: IAccountReconciler = Depends(get_account_reconciler),
) -> FederatedSignInResult:
    return await reconciler.begin_federated_sign_in(
        request.provider, request.id_token, request.expected_role
    )


@router.post("/federated/redirect", response_model=FederatedSignInResult)
async def resume_federated(
    request: FederatedRedirectRequest,
    reconciler: IAccountReconciler = Depends(get_account_reconciler),
) -> FederatedSignInResult:
    return await reconciler.resume_federated_redirect(
        request.auth_code, request.code_verifier, request.expected_role
    )


@router.post("/federated/complete", response_model=SignupResult, status_code=201)
async def complete_federated(
    request: FederatedCompleteRequest,
    token: str = Depends(get_bearer_token),
    user: AuthenticatedUser = Depends(get_current_user),
    reconciler: IAccountReconciler = Depends(get_account_reconciler),
) -> SignupResult:
    """
    Create the account for a federated sign-in.

    The account id comes from the bearer token, never from the body.
    """
    session = CredentialSession(
        account_id=user.id,
        email=user.email,
        email_verified=user.email_verified,
        provider="federated",
        access_token=token,
        refresh_token=request.refresh_token,
    )
    return await reconciler.complete_federated_signup(
        session, user.id, request.claimed_email, request.role, request.profile
    )


@router.get("/me", response_model=Account)
async def get_my_account(
    user: AuthenticatedUser = Depends(get_current_user),
    reconciler: IAccountReconciler = Depends(get_account_reconciler),
) -> Account:
    return await reconciler.get_account(user.id)


@router.post("/password-reset", response_model=PasswordResetResponse, status_code=202)
async def request_password_reset(
    request: PasswordResetRequest,
    reconciler: IAccountReconciler = Depends(get_account_reconciler),
) -> PasswordResetResponse:
    """Always 202, whether or not the email has an account."""
    await reconciler.request_password_reset(request.email)
    return PasswordResetResponse()
