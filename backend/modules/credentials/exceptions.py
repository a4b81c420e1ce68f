"""
Credential gateway exceptions.

These exceptions are raised by the credential gateway and can be caught
by API error handlers to return appropriate HTTP responses. Provider
specific error codes are translated into these before leaving the module.
"""

from shared.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    ExternalServiceError,
    ValidationError,
)


class InvalidTokenError(AuthenticationError):
    """Raised when an identity token is invalid or malformed."""

    def __init__(self, message: str = "Invalid authentication token"):
        super().__init__(message, code="INVALID_TOKEN")


class ExpiredTokenError(AuthenticationError):
    """Raised when an identity token has expired."""

    def __init__(self, message: str = "Authentication token has expired"):
        super().__init__(message, code="TOKEN_EXPIRED")


class MissingTokenError(AuthenticationError):
    """Raised when no identity token is provided."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, code="MISSING_TOKEN")


class EmailInUseError(ConflictError):
    """Raised when the provider already has an identity for this email."""

    def __init__(self, email: str):
        super().__init__(
            "An identity with this email already exists",
            code="EMAIL_IN_USE",
            details={"email": email},
        )


class WeakPasswordError(ValidationError):
    """Raised when the provider rejects a password as too weak."""

    def __init__(self, message: str = "Password is too weak"):
        super().__init__(message, code="WEAK_PASSWORD")


class InvalidEmailError(ValidationError):
    """Raised when the provider rejects an email address."""

    def __init__(self, email: str):
        super().__init__(
            f"Invalid email address: {email}",
            code="INVALID_EMAIL",
            details={"email": email},
        )


class UserNotFoundError(AuthenticationError):
    """Raised when no provider identity matches the sign-in email."""

    def __init__(self, email: str):
        super().__init__(
            "No account found for this email",
            code="USER_NOT_FOUND",
            details={"email": email},
        )


class WrongPasswordError(AuthenticationError):
    """Raised when the password does not match."""

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message, code="WRONG_PASSWORD")


class PopupClosedError(AuthenticationError):
    """Raised when a federated sign-in was abandoned before completing."""

    def __init__(self, message: str = "Federated sign-in was not completed"):
        super().__init__(message, code="POPUP_CLOSED")


class UnauthorizedDomainError(AuthorizationError):
    """Raised when the federated provider is not enabled for this origin."""

    def __init__(self, provider: str):
        super().__init__(
            f"Federated sign-in with {provider} is not authorized here",
            code="UNAUTHORIZED_DOMAIN",
            details={"provider": provider},
        )


class CredentialRefreshError(ExternalServiceError):
    """Raised when a session's credential cannot be refreshed."""

    def __init__(self, message: str = "Could not refresh credential"):
        super().__init__(message, service="credential_provider", code="CREDENTIAL_REFRESH_FAILED")


class CredentialProviderError(ExternalServiceError):
    """Raised for provider failures that have no more specific kind."""

    def __init__(self, message: str, provider_code: str = ""):
        super().__init__(
            message,
            service="credential_provider",
            code="CREDENTIAL_PROVIDER_ERROR",
            details={"provider_code": provider_code},
        )
