"""
Accounts module exceptions.
"""

from shared.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)


class EmailAlreadyRegisteredError(ConflictError):
    """Raised when the email is already claimed by a live account."""

    def __init__(self, normalized_email: str):
        super().__init__(
            "This email is already registered",
            code="EMAIL_ALREADY_REGISTERED",
            details={"email": normalized_email},
        )


class IdentityMismatchError(AuthenticationError):
    """Raised when the caller's provider identity does not match what they claim."""

    def __init__(self, message: str = "Session identity does not match the request"):
        super().__init__(message, code="IDENTITY_MISMATCH")


class AccountNotFoundError(NotFoundError):
    """Raised when no account document exists for an id."""

    def __init__(self, account_id: str):
        super().__init__(
            f"Account not found: {account_id}",
            code="ACCOUNT_NOT_FOUND",
            details={"account_id": account_id},
        )


class AccountRoleMismatchError(AuthorizationError):
    """Raised when an account signs in through the other portal."""

    def __init__(self, expected: str, actual: str):
        super().__init__(
            f"This account is not registered as {expected}",
            code="ACCOUNT_ROLE_MISMATCH",
            details={"expected_role": expected, "actual_role": actual},
        )


class InvalidSignupError(ValidationError):
    """Raised when signup input cannot be used."""

    def __init__(self, message: str):
        super().__init__(message, code="INVALID_SIGNUP")


class AccountDisabledError(AuthorizationError):
    """Raised when a deactivated account tries to sign in."""

    def __init__(self, account_id: str):
        super().__init__(
            "This account has been deactivated",
            code="ACCOUNT_DISABLED",
            details={"account_id": account_id},
        )
