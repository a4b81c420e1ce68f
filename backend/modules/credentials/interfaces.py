"""
Credential gateway interface.

Other modules should depend on ICredentialGateway, not the concrete
implementation. Every call is a suspension point (network I/O with the
identity provider).
"""

from typing import Protocol, runtime_checkable

from shared.models import AuthenticatedUser

from .models import CredentialSession, ProviderIdentity


@runtime_checkable
class ICredentialGateway(Protocol):
    """
    Interface for identity provider operations.

    Sign-in style calls return a CredentialSession; session-scoped calls
    take that session back.
    """

    async def create_account_with_password(self, email: str, password: str) -> CredentialSession:
        """
        Create a password identity and sign it in.

        Raises:
            EmailInUseError, WeakPasswordError, InvalidEmailError
        """
        ...

    async def sign_in_with_password(self, email: str, password: str) -> CredentialSession:
        """
        Sign in with email and password.

        Raises:
            UserNotFoundError, WrongPasswordError
        """
        ...

    async def sign_in_with_federated_token(self, provider: str, id_token: str) -> CredentialSession:
        """
        Sign in with an identity token obtained from a federated provider popup.

        Raises:
            PopupClosedError, UnauthorizedDomainError
        """
        ...

    async def complete_federated_redirect(
        self,
        auth_code: str,
        code_verifier: str = "",
    ) -> CredentialSession:
        """
        Finish a redirect-based federated sign-in.

        Same result shape as sign_in_with_federated_token, delivered after
        the browser returns from the provider.
        """
        ...

    async def refresh_credential(self, session: CredentialSession, force: bool = False) -> str:
        """
        Return a valid identity token for the session, minting a new one if
        ``force`` is set or the current one is about to expire.

        Raises:
            CredentialRefreshError: If the session can no longer be refreshed.
        """
        ...

    async def get_identity(self, session: CredentialSession) -> ProviderIdentity:
        """
        Ask the provider who holds this session.

        Raises:
            InvalidTokenError, ExpiredTokenError
        """
        ...

    async def sign_out(self, session: CredentialSession) -> None:
        """Revoke the session at the provider."""
        ...

    async def send_verification_email(self, session: CredentialSession) -> None:
        """Ask the provider to email a verification link to the session's address."""
        ...

    async def send_password_reset(self, email: str) -> None:
        """Ask the provider to email a password reset link. Silent for unknown emails."""
        ...

    async def validate_token(self, token: str) -> AuthenticatedUser:
        """
        Validate an identity token and return the caller it proves.

        Raises:
            MissingTokenError, ExpiredTokenError, InvalidTokenError
        """
        ...
