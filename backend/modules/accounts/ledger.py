"""
Email claim ledger.

Single source of truth for email uniqueness: ``emailClaims/{normalized}``
holds the id of the account that owns the address. The address is
percent-encoded in the key so characters such as "/" stay inside one
document id. Claims are decided inside a document-store transaction
that also reads the current owner's account, so "is the owner alive"
and "take the claim" are one atomic step.
"""

import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import quote

from shared.documents import IDocumentStore, Transaction, doc_path
from shared.models import utc_now
from shared.retry import RetryPolicy, run_with_retry

from .exceptions import InvalidSignupError
from .models import ClaimOutcome, ClaimResult, EmailClaim
from .repository import ACCOUNTS_COLLECTION

logger = logging.getLogger(__name__)

CLAIMS_COLLECTION = "emailClaims"


class EmailClaimLedger:
    """
    Maintains the normalized email -> owning account mapping.

    ``try_claim_in`` participates in a caller's transaction (the Account
    Reconciler writes the account document in the same commit);
    ``try_claim`` runs a standalone transaction under the retry policy.
    """

    def __init__(
        self,
        store: IDocumentStore,
        policy: Optional[RetryPolicy] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self._policy = policy or RetryPolicy.from_settings()
        self._clock = clock

    @staticmethod
    def claim_key(normalized_email: str) -> str:
        if not normalized_email:
            raise InvalidSignupError("Email is required")
        return doc_path(CLAIMS_COLLECTION, quote(normalized_email, safe="@+"))

    async def try_claim_in(
        self,
        tx: Transaction,
        normalized_email: str,
        candidate_account_id: str,
    ) -> ClaimResult:
        """
        Decide a claim inside an open transaction and stage its write.

        A claim already held by the candidate counts as CLAIMED and stages
        nothing, so retried signups stay idempotent.
        """
        key = self.claim_key(normalized_email)
        current = await tx.get(key)

        if current is not None:
            owner = current.get("owner_account_id")
            if owner == candidate_account_id:
                return ClaimResult(
                    outcome=ClaimOutcome.CLAIMED,
                    normalized_email=normalized_email,
                    owner_account_id=owner,
                )
            if owner and await tx.get(doc_path(ACCOUNTS_COLLECTION, owner)) is not None:
                return ClaimResult(
                    outcome=ClaimOutcome.CONFLICT,
                    normalized_email=normalized_email,
                    owner_account_id=owner,
                )

        claim = EmailClaim(owner_account_id=candidate_account_id, claimed_at=self._clock())
        tx.set(key, claim.model_dump(mode="json"))

        if current is None:
            return ClaimResult(
                outcome=ClaimOutcome.CLAIMED,
                normalized_email=normalized_email,
                owner_account_id=candidate_account_id,
            )

        previous = current.get("owner_account_id")
        logger.warning(
            "Reclaiming orphaned email claim for %s (previous owner %s)",
            normalized_email, previous,
        )
        return ClaimResult(
            outcome=ClaimOutcome.RECLAIMED,
            normalized_email=normalized_email,
            owner_account_id=candidate_account_id,
            previous_owner_id=previous,
        )

    async def try_claim(
        self,
        normalized_email: str,
        candidate_account_id: str,
        refresh_credential: Optional[Callable[[], Awaitable[Any]]] = None,
    ) -> ClaimResult:
        """Claim an email in its own transaction."""
        key = self.claim_key(normalized_email)

        async def write(tx: Transaction) -> ClaimResult:
            return await self.try_claim_in(tx, normalized_email, candidate_account_id)

        result = await run_with_retry(
            lambda: self._store.transact([key], write),
            policy=self._policy,
            operation_name="email_claim",
            refresh_credential=refresh_credential,
        )
        return result.value

    async def get_owner(self, normalized_email: str) -> Optional[str]:
        """Current owner of an email claim, or None if unclaimed."""
        key = self.claim_key(normalized_email)
        data = await run_with_retry(
            lambda: self._store.get(key),
            policy=self._policy,
            operation_name="email_claim_read",
        )
        return data.get("owner_account_id") if data else None
