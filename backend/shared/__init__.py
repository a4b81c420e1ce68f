"""
Shared infrastructure for the CareLink backend.

This package contains cross-cutting concerns that are used by multiple modules:
- config: Centralized settings management
- database: Supabase client factory
- documents: Document store abstraction and in-memory store
- retry: Retry policy for store and credential calls
- exceptions: Base exception classes and store error kinds

Note: Business logic should NOT go here. This is for infrastructure only.
"""

from .config import Settings, get_settings
from .documents import IDocumentStore, InMemoryDocumentStore, Transaction, doc_path
from .exceptions import (
    CareLinkError,
    NotFoundError,
    ValidationError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    ExternalServiceError,
    StoreError,
    TransactionConflictError,
    TransactionContentionError,
    StorePermissionDeniedError,
    StaleCredentialError,
    DocumentNotFoundError,
    StoreUnavailableError,
)
from .models import AuthenticatedUser, utc_now
from .retry import RetryPolicy, run_with_retry

__all__ = [
    "Settings",
    "get_settings",
    "IDocumentStore",
    "InMemoryDocumentStore",
    "Transaction",
    "doc_path",
    "CareLinkError",
    "NotFoundError",
    "ValidationError",
    "AuthenticationError",
    "AuthorizationError",
    "ConflictError",
    "ExternalServiceError",
    "StoreError",
    "TransactionConflictError",
    "TransactionContentionError",
    "StorePermissionDeniedError",
    "StaleCredentialError",
    "DocumentNotFoundError",
    "StoreUnavailableError",
    "AuthenticatedUser",
    "utc_now",
    "RetryPolicy",
    "run_with_retry",
]
