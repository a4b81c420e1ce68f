"""
Linking module exceptions.
"""

from shared.exceptions import AuthorizationError, ConflictError, ValidationError


class InvalidOrExpiredCodeError(ValidationError):
    """
    Raised when a code cannot be redeemed.

    Unknown, already used and expired codes all raise this same error so
    callers cannot tell which codes ever existed.
    """

    def __init__(self):
        super().__init__("Invalid or expired linking code", code="INVALID_OR_EXPIRED_CODE")


class LinkingRoleError(AuthorizationError):
    """Raised when an account with the wrong role generates or redeems a code."""

    def __init__(self, account_id: str, required_role: str):
        super().__init__(
            f"Only {required_role} accounts can do this",
            code="LINKING_ROLE_REQUIRED",
            details={"account_id": account_id, "required_role": required_role},
        )


class CodeGenerationError(ConflictError):
    """Raised when every generated code collided with an existing one."""

    def __init__(self, attempts: int):
        super().__init__(
            "Could not generate a unique linking code",
            code="CODE_GENERATION_FAILED",
            details={"attempts": attempts},
        )
