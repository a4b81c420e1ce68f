"""
Base exception classes for the CareLink backend.

Each module should define its own exceptions that inherit from these bases.
This enables consistent error handling across the application.

The store error kinds at the bottom are shared by every module that talks
to the document store, so the retry policy can tell them apart.
"""

from typing import Optional, Any


class CareLinkError(Exception):
    """
    Base exception for all CareLink errors.

    All custom exceptions should inherit from this class.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(CareLinkError):
    """Resource not found."""

    pass


class ValidationError(CareLinkError):
    """Input validation failed."""

    pass


class AuthenticationError(CareLinkError):
    """Authentication failed (invalid or missing credentials)."""

    pass


class AuthorizationError(CareLinkError):
    """Authorization failed (insufficient permissions)."""

    pass


class ConflictError(CareLinkError):
    """A uniqueness or single-use invariant would be violated."""

    pass


class ExternalServiceError(CareLinkError):
    """Error communicating with an external service."""

    def __init__(
        self,
        message: str,
        service: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)
        self.service = service
        self.details["service"] = service


# -----------------------------------------------------------------------------
# Document store error kinds
# -----------------------------------------------------------------------------


class StoreError(ExternalServiceError):
    """Base class for failures reported by the document store."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, service="document_store", code=code, details=details)


class TransactionConflictError(StoreError):
    """A concurrent transaction changed a document this transaction read."""

    def __init__(self, keys: Optional[list[str]] = None):
        super().__init__(
            "Transaction aborted by a concurrent write",
            code="TRANSACTION_CONFLICT",
            details={"keys": keys or []},
        )


class TransactionContentionError(StoreError):
    """Conflict retries were exhausted without a successful commit."""

    def __init__(self, operation: str, attempts: int):
        super().__init__(
            f"Too much contention on '{operation}' after {attempts} attempts",
            code="TRANSACTION_CONTENTION",
            details={"operation": operation, "attempts": attempts},
        )


class StorePermissionDeniedError(StoreError):
    """The store rejected the request for the current credentials."""

    def __init__(self, message: str = "Permission denied by the document store"):
        super().__init__(message, code="PERMISSION_DENIED")


class StaleCredentialError(StoreError):
    """The credential presented to the store has expired or been revoked."""

    def __init__(self, message: str = "Authorization credential is stale"):
        super().__init__(message, code="STALE_CREDENTIAL")


class DocumentNotFoundError(StoreError):
    """A document that was required to exist is missing."""

    def __init__(self, key: str):
        super().__init__(
            f"Document not found: {key}",
            code="DOCUMENT_NOT_FOUND",
            details={"key": key},
        )


class StoreUnavailableError(StoreError):
    """Transient network or availability failure talking to the store."""

    def __init__(self, message: str = "Document store unavailable"):
        super().__init__(message, code="STORE_UNAVAILABLE")
