"""
Dependency injection setup for FastAPI.

This module provides the "container" that wires together all module
implementations. Each module exposes its service through an interface,
and this file creates the concrete implementations.

The document store and credential gateway are chosen by settings
(``DOCUMENT_STORE`` / ``CREDENTIAL_BACKEND``); every engine component
shares the same store, retry policy and audit log.
"""

from typing import TYPE_CHECKING, Optional

from shared.config import Settings, get_settings

# Type checking imports for interfaces (avoids circular imports)
if TYPE_CHECKING:
    from shared.audit import AuditLog
    from shared.documents import IDocumentStore
    from shared.retry import RetryPolicy
    from modules.credentials.interfaces import ICredentialGateway
    from modules.accounts.interfaces import IAccountReconciler, IEmailClaimLedger
    from modules.linking.interfaces import ILinkingCodeService
    from modules.assignments.interfaces import IAssignmentProgressTracker


class ServiceContainer:
    """
    Container for all service instances.

    This class manages the lifecycle of service instances and their
    dependencies. Services are created lazily on first access.

    All services are cached as singletons within the container.
    Use reset() to clear all cached services for testing.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings
        self._store: "IDocumentStore | None" = None
        self._credentials: "ICredentialGateway | None" = None
        self._policy: "RetryPolicy | None" = None
        self._audit: "AuditLog | None" = None
        self._ledger: "IEmailClaimLedger | None" = None
        self._accounts: "IAccountReconciler | None" = None
        self._linking: "ILinkingCodeService | None" = None
        self._assignments: "IAssignmentProgressTracker | None" = None

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    @property
    def store(self) -> "IDocumentStore":
        """Get the document store instance."""
        if self._store is None:
            if self.settings.document_store == "supabase":
                from shared.database import get_supabase_client
                from shared.supabase_store import SupabaseDocumentStore
                self._store = SupabaseDocumentStore(
                    get_supabase_client(),
                    table=self.settings.documents_table,
                    commit_function=self.settings.commit_function,
                )
            else:
                from shared.documents import InMemoryDocumentStore
                self._store = InMemoryDocumentStore()
        return self._store

    @property
    def credentials(self) -> "ICredentialGateway":
        """Get the credential gateway instance."""
        if self._credentials is None:
            from modules.credentials.service import get_credential_gateway
            self._credentials = get_credential_gateway()
        return self._credentials

    @property
    def policy(self) -> "RetryPolicy":
        if self._policy is None:
            from shared.retry import RetryPolicy
            self._policy = RetryPolicy.from_settings(self.settings)
        return self._policy

    @property
    def audit(self) -> "AuditLog":
        if self._audit is None:
            from shared.audit import AuditLog
            self._audit = AuditLog(self.store)
        return self._audit

    @property
    def ledger(self) -> "IEmailClaimLedger":
        """Get the email claim ledger instance."""
        if self._ledger is None:
            from modules.accounts.ledger import EmailClaimLedger
            self._ledger = EmailClaimLedger(self.store, self.policy)
        return self._ledger

    @property
    def accounts(self) -> "IAccountReconciler":
        """Get the account reconciler instance."""
        if self._accounts is None:
            from modules.accounts.reconciler import AccountReconciler
            self._accounts = AccountReconciler(
                self.store,
                self.credentials,
                ledger=self.ledger,
                policy=self.policy,
                audit=self.audit,
                profile_load_attempts=self.settings.profile_load_attempts,
            )
        return self._accounts

    @property
    def linking(self) -> "ILinkingCodeService":
        """Get the linking code service instance."""
        if self._linking is None:
            from modules.linking.service import LinkingCodeService
            self._linking = LinkingCodeService(self.store, policy=self.policy, audit=self.audit)
        return self._linking

    @property
    def assignments(self) -> "IAssignmentProgressTracker":
        """Get the assignment progress tracker instance."""
        if self._assignments is None:
            from modules.assignments.service import AssignmentProgressTracker
            self._assignments = AssignmentProgressTracker(
                self.store,
                policy=self.policy,
                audit=self.audit,
                increment=self.settings.progress_increment,
            )
        return self._assignments

    def reset(self) -> None:
        """
        Reset all cached services.

        This is primarily for testing - allows tests to get fresh
        service instances with different mock dependencies.
        """
        self._store = None
        self._credentials = None
        self._policy = None
        self._audit = None
        self._ledger = None
        self._accounts = None
        self._linking = None
        self._assignments = None


# Module-level container singleton
_container: ServiceContainer | None = None


def get_container() -> ServiceContainer:
    """Get the singleton service container."""
    global _container
    if _container is None:
        _container = ServiceContainer()
    return _container


def set_container(container: ServiceContainer) -> None:
    """Install a pre-built container (tests wire in-memory collaborators this way)."""
    global _container
    _container = container


def reset_container() -> None:
    """
    Reset the service container.

    This clears the cached container, so the next call to get_container()
    will create a fresh container with new service instances.

    Primarily used for testing.
    """
    global _container
    _container = None


# FastAPI dependency functions
# These are the functions that should be used in route Depends() calls


def get_credential_gateway() -> "ICredentialGateway":
    """FastAPI dependency for the credential gateway."""
    return get_container().credentials


def get_account_reconciler() -> "IAccountReconciler":
    """FastAPI dependency for the account reconciler."""
    return get_container().accounts


def get_linking_service() -> "ILinkingCodeService":
    """FastAPI dependency for the linking code service."""
    return get_container().linking


def get_assignment_tracker() -> "IAssignmentProgressTracker":
    """FastAPI dependency for the assignment progress tracker."""
    return get_container().assignments
