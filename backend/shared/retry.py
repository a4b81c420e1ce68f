"""
Retry policy for calls into the document store and credential provider.

Every component that talks to the store goes through ``run_with_retry`` so
transient failures are handled the same way everywhere:

- conflicting concurrent transactions are retried with backoff
- stale credentials and permission denials force a credential refresh
  before the next attempt
- transient outages are retried with backoff

Anything else (including semantic errors raised by a transaction's write
function) propagates on the first occurrence.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from .config import Settings, get_settings
from .exceptions import (
    CareLinkError,
    StaleCredentialError,
    StorePermissionDeniedError,
    StoreUnavailableError,
    TransactionConflictError,
    TransactionContentionError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_ERRORS = (
    TransactionConflictError,
    StoreUnavailableError,
    StaleCredentialError,
    StorePermissionDeniedError,
)
CREDENTIAL_ERRORS = (StaleCredentialError, StorePermissionDeniedError)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff."""

    max_attempts: int = 5
    base_delay: float = 0.1
    max_delay: float = 2.0
    jitter: bool = True

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "RetryPolicy":
        settings = settings or get_settings()
        return cls(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
            jitter=settings.retry_jitter,
        )

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (0-based)."""
        delay = min(self.max_delay, self.base_delay * (2**attempt))
        if delay and self.jitter:
            delay = delay + random.uniform(0, delay / 2)
        return delay


async def _refresh(refresh_credential: Callable[[], Awaitable[Any]], operation_name: str) -> None:
    try:
        await refresh_credential()
    except CareLinkError as e:
        # The next attempt still runs; if the credential is really gone
        # it fails again and the bounded loop surfaces that error.
        logger.warning("Credential refresh before retrying %s failed: %s", operation_name, e.message)


async def run_with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    operation_name: str,
    refresh_credential: Optional[Callable[[], Awaitable[Any]]] = None,
) -> T:
    """
    Run ``operation`` under the retry policy.

    Args:
        operation: Zero-argument coroutine function performing one attempt.
        policy: Backoff parameters and attempt bound.
        operation_name: Name used in logs and contention errors.
        refresh_credential: Forces a credential refresh; awaited before
            retrying after a stale-credential or permission error.

    Returns:
        The operation's result.

    Raises:
        TransactionContentionError: If every attempt hit a conflict.
        StaleCredentialError, StorePermissionDeniedError,
        StoreUnavailableError: If the last attempt failed with that kind.

    Cancellation (task cancel or an ``asyncio.timeout`` deadline) is never
    caught here, so it stops the loop at the next suspension point.
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except RETRYABLE_ERRORS as e:
            attempt += 1
            if attempt >= policy.max_attempts:
                logger.warning(
                    "%s failed after %d attempt(s): %s", operation_name, attempt, e.code
                )
                if isinstance(e, TransactionConflictError):
                    raise TransactionContentionError(operation_name, attempt) from e
                raise

            logger.debug(
                "%s attempt %d/%d failed with %s, retrying",
                operation_name, attempt, policy.max_attempts, e.code,
            )
            if isinstance(e, CREDENTIAL_ERRORS) and refresh_credential is not None:
                await _refresh(refresh_credential, operation_name)

            delay = policy.delay_for(attempt - 1)
            if delay:
                await asyncio.sleep(delay)
            else:
                await asyncio.sleep(0)
