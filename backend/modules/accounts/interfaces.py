"""
Accounts module interfaces.

Other modules should depend on these interfaces, not concrete implementations.
"""

from typing import Optional, Protocol, runtime_checkable

from shared.documents import Transaction
from modules.credentials.models import CredentialSession

from .models import (
    Account,
    AccountProfile,
    AccountRole,
    ClaimResult,
    FederatedSignInResult,
    SignInResult,
    SignupResult,
)


@runtime_checkable
class IEmailClaimLedger(Protocol):
    """Interface for the email uniqueness ledger."""

    async def try_claim_in(
        self,
        tx: Transaction,
        normalized_email: str,
        candidate_account_id: str,
    ) -> ClaimResult:
        """Decide a claim inside the caller's transaction."""
        ...

    async def try_claim(self, normalized_email: str, candidate_account_id: str) -> ClaimResult:
        """Claim an email in a standalone, retried transaction."""
        ...

    async def get_owner(self, normalized_email: str) -> Optional[str]:
        """Return the owning account id, or None if unclaimed."""
        ...


@runtime_checkable
class IAccountReconciler(Protocol):
    """
    Interface for account creation and sign-in.

    Every path that creates an Account goes through the ledger in the same
    transaction as the account write.
    """

    async def signup_direct(
        self,
        email: str,
        password: str,
        role: AccountRole,
        profile: Optional[AccountProfile] = None,
    ) -> SignupResult:
        """
        Create a provider identity with a password and its Account.

        Raises:
            EmailAlreadyRegisteredError: If a live account owns the email.
        """
        ...

    async def complete_federated_signup(
        self,
        session: CredentialSession,
        session_account_id: str,
        claimed_email: str,
        role: AccountRole,
        profile: Optional[AccountProfile] = None,
    ) -> SignupResult:
        """
        Create the Account for a caller already authenticated by a federated provider.

        Raises:
            IdentityMismatchError: If the session does not prove the claimed identity.
            EmailAlreadyRegisteredError: If a live account owns the email. The
                provider session is signed out.
        """
        ...

    async def sign_in(
        self,
        email: str,
        password: str,
        expected_role: Optional[AccountRole] = None,
    ) -> SignInResult:
        """Password sign-in that also loads the Account."""
        ...

    async def begin_federated_sign_in(
        self,
        provider: str,
        id_token: str,
        expected_role: Optional[AccountRole] = None,
    ) -> FederatedSignInResult:
        """Sign in with a federated identity token, optionally for one portal role."""
        ...

    async def resume_federated_redirect(
        self,
        auth_code: str,
        code_verifier: str = "",
        expected_role: Optional[AccountRole] = None,
    ) -> FederatedSignInResult:
        """Finish a redirect-based federated sign-in."""
        ...

    async def get_account(self, account_id: str) -> Account:
        """Load an account or raise AccountNotFoundError."""
        ...

    async def request_password_reset(self, email: str) -> None:
        """Send a password reset email."""
        ...
