"""
Shared test fixtures and utilities.

This module provides common test infrastructure used across all test modules.
"""

import pytest
from datetime import datetime, timezone, timedelta
from typing import Any, Iterable, Optional
import jwt  # PyJWT

from shared.config import get_settings
from shared.documents import CommitResult, InMemoryDocumentStore, WriteFn
from shared.retry import RetryPolicy
from modules.credentials.service import InMemoryCredentialGateway, reset_credential_gateway
from modules.accounts.ledger import EmailClaimLedger
from modules.accounts.reconciler import AccountReconciler
from modules.linking.service import LinkingCodeService
from modules.assignments.service import AssignmentProgressTracker


# Test JWT secret (only for testing)
TEST_JWT_SECRET = "test-secret-key-for-testing-only"


def create_test_token(
    user_id: str = "test-user-123",
    email: str = "test@example.com",
    expired: bool = False,
    email_verified: bool = True,
) -> str:
    """
    Create a test JWT token for authentication.

    Args:
        user_id: Account ID to include in the token
        email: Email to include in the token
        expired: If True, creates an expired token
        email_verified: Whether the email should be marked as verified

    Returns:
        JWT token string
    """
    now = datetime.now(timezone.utc)
    exp = now - timedelta(hours=1) if expired else now + timedelta(hours=1)

    payload = {
        "sub": user_id,
        "email": email,
        "email_confirmed_at": now.isoformat() if email_verified else None,
        "aud": "authenticated",
        "role": "authenticated",
        "exp": int(exp.timestamp()),
        "iat": int(now.timestamp()),
    }
    return jwt.encode(payload, TEST_JWT_SECRET, algorithm="HS256")


class FakeClock:
    """Controllable clock passed to services instead of utc_now."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> None:
        self.now = self.now + timedelta(**kwargs)


class FlakyDocumentStore:
    """
    Wraps a store and injects failures into the next calls.

    ``fail_next("transact", error, times=2)`` makes the next two transact
    calls raise ``error`` before reaching the inner store.
    """

    def __init__(self, inner: InMemoryDocumentStore):
        self.inner = inner
        self._failures: dict[str, list[Exception]] = {"get": [], "append": [], "transact": []}
        self.calls: dict[str, int] = {"get": 0, "append": 0, "transact": 0}

    def fail_next(self, operation: str, error: Exception, times: int = 1) -> None:
        self._failures[operation].extend([error] * times)

    def _maybe_fail(self, operation: str) -> None:
        self.calls[operation] += 1
        if self._failures[operation]:
            raise self._failures[operation].pop(0)

    async def get(self, key: str) -> Optional[dict]:
        self._maybe_fail("get")
        return await self.inner.get(key)

    async def append(self, collection: str, data: dict, doc_id: Optional[str] = None) -> str:
        self._maybe_fail("append")
        return await self.inner.append(collection, data, doc_id)

    async def transact(self, read_keys: Iterable[str], write_fn: WriteFn) -> CommitResult:
        self._maybe_fail("transact")
        return await self.inner.transact(read_keys, write_fn)


async def seed_account(
    store: Any,
    account_id: str,
    role: str = "dependent",
    email: Optional[str] = None,
    manager_account_id: Optional[str] = None,
    status: str = "active",
) -> dict:
    """Write an account document directly, bypassing the reconciler."""
    email = email or f"{account_id}@example.com"
    document = {
        "id": account_id,
        "normalized_email": email.lower(),
        "email": email,
        "role": role,
        "status": status,
        "manager_account_id": manager_account_id,
        "profile": {},
        "created_at": "2026-01-01T00:00:00+00:00",
        "updated_at": "2026-01-01T00:00:00+00:00",
    }
    await store.append("accounts", document, doc_id=account_id)
    return document


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset cached settings and the gateway singleton around each test."""
    get_settings.cache_clear()
    reset_credential_gateway()
    yield
    reset_credential_gateway()
    get_settings.cache_clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def policy() -> RetryPolicy:
    """Retry policy without sleeping."""
    return RetryPolicy(max_attempts=5, base_delay=0, max_delay=0, jitter=False)


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def gateway() -> InMemoryCredentialGateway:
    return InMemoryCredentialGateway(jwt_secret=TEST_JWT_SECRET)


@pytest.fixture
def ledger(store, policy, clock) -> EmailClaimLedger:
    return EmailClaimLedger(store, policy, clock)


@pytest.fixture
def reconciler(store, gateway, ledger, policy, clock) -> AccountReconciler:
    return AccountReconciler(
        store, gateway, ledger=ledger, policy=policy, clock=clock, profile_load_attempts=3
    )


@pytest.fixture
def linking(store, policy, clock) -> LinkingCodeService:
    return LinkingCodeService(store, policy=policy, clock=clock)


@pytest.fixture
def tracker(store, policy, clock) -> AssignmentProgressTracker:
    return AssignmentProgressTracker(store, policy=policy, clock=clock, increment=20)


@pytest.fixture
def test_user_id() -> str:
    """Provide a consistent test user ID."""
    return "test-user-123"


@pytest.fixture
def auth_token(test_user_id: str) -> str:
    """Create a valid auth token for testing."""
    return create_test_token(user_id=test_user_id)


@pytest.fixture
def auth_headers(auth_token: str) -> dict[str, str]:
    """Create authorization headers with a valid token."""
    return {"Authorization": f"Bearer {auth_token}"}


@pytest.fixture
def flaky_store(store) -> FlakyDocumentStore:
    """The test store wrapped so failures can be injected."""
    return FlakyDocumentStore(store)


@pytest.fixture
def seed(store):
    """Seed account documents into the test store: ``await seed("a1", role="manager")``."""
    async def _seed(account_id: str, **kwargs: Any) -> dict:
        return await seed_account(store, account_id, **kwargs)
    return _seed


@pytest.fixture
def make_token():
    """Factory for signed test tokens."""
    return create_test_token
