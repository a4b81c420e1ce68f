"""
Linking code service.

A dependent mints a short code and reads it to their manager out of band;
the manager redeems it exactly once to link the two accounts. Redemption
marks the code used, sets the dependent's manager reference and writes the
manager's roster entry in a single transaction.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from shared.audit import AuditLog
from shared.config import get_settings
from shared.documents import IDocumentStore, Transaction, doc_path
from shared.models import utc_now
from shared.retry import RetryPolicy, run_with_retry

from modules.accounts.exceptions import AccountNotFoundError
from modules.accounts.models import AccountRole
from modules.accounts.repository import AccountRepository

from .codes import code_digest, generate_code, normalize_code
from .exceptions import CodeGenerationError, InvalidOrExpiredCodeError, LinkingRoleError
from .models import GeneratedCode, LinkingCode, LinkResult, RosterEntry

logger = logging.getLogger(__name__)

CODES_COLLECTION = "linkingCodes"
MANAGERS_COLLECTION = "managers"
ROSTER_COLLECTION = "roster"


def code_key(digest: str) -> str:
    return doc_path(CODES_COLLECTION, digest)


def roster_key(manager_account_id: str, dependent_account_id: str) -> str:
    return doc_path(MANAGERS_COLLECTION, manager_account_id, ROSTER_COLLECTION, dependent_account_id)


class LinkingCodeService:
    """
    Generates and redeems single-use linking codes.

    Several outstanding codes per dependent are allowed; each one expires
    after the configured TTL whether or not it was used.
    """

    def __init__(
        self,
        store: IDocumentStore,
        policy: Optional[RetryPolicy] = None,
        audit: Optional[AuditLog] = None,
        clock: Callable[[], datetime] = utc_now,
        code_factory: Callable[[], str] = generate_code,
        ttl: Optional[timedelta] = None,
        max_generation_attempts: Optional[int] = None,
    ):
        settings = get_settings()
        self._store = store
        self._policy = policy or RetryPolicy.from_settings()
        self._accounts = AccountRepository(store)
        self._audit = audit or AuditLog(store, clock)
        self._clock = clock
        self._code_factory = code_factory
        self._ttl = ttl or timedelta(hours=settings.linking_code_ttl_hours)
        self._max_generation_attempts = (
            max_generation_attempts or settings.linking_code_max_generation_attempts
        )

    async def generate(self, dependent_account_id: str) -> GeneratedCode:
        owner = await run_with_retry(
            lambda: self._accounts.get(dependent_account_id),
            policy=self._policy,
            operation_name="linking_owner_read",
        )
        if owner is None:
            raise AccountNotFoundError(dependent_account_id)
        if owner.role != AccountRole.DEPENDENT:
            raise LinkingRoleError(dependent_account_id, AccountRole.DEPENDENT.value)

        for attempt in range(1, self._max_generation_attempts + 1):
            code = self._code_factory()
            now = self._clock()
            record = LinkingCode(
                owner_account_id=dependent_account_id,
                created_at=now,
                expires_at=now + self._ttl,
            )
            digest = code_digest(code)
            if await self._create(digest, record):
                logger.info(
                    "Linking code issued for %s, expires %s",
                    dependent_account_id, record.expires_at.isoformat(),
                )
                await self._audit.record(
                    actor_id=dependent_account_id,
                    action="linking_code.generated",
                    entity=CODES_COLLECTION,
                    entity_id=digest,
                    data={"expires_at": record.expires_at.isoformat()},
                )
                return GeneratedCode(code=code, expires_at=record.expires_at)
            logger.warning("Linking code collision on attempt %d, generating another", attempt)

        raise CodeGenerationError(self._max_generation_attempts)

    async def _create(self, digest: str, record: LinkingCode) -> bool:
        """Write the code only if no document exists under its digest."""
        key = code_key(digest)

        async def write(tx: Transaction) -> bool:
            if tx.snapshot[key] is not None:
                return False
            tx.set(key, record.model_dump(mode="json"))
            return True

        result = await run_with_retry(
            lambda: self._store.transact([key], write),
            policy=self._policy,
            operation_name="linking_code_create",
        )
        return result.value

    async def redeem(self, plaintext_code: str, manager_account_id: str) -> LinkResult:
        normalized = normalize_code(plaintext_code)
        if not normalized:
            raise InvalidOrExpiredCodeError()

        key = code_key(code_digest(normalized))
        manager_key = self._accounts.key(manager_account_id)

        async def write(tx: Transaction) -> LinkResult:
            manager = tx.snapshot[manager_key]
            if manager is None:
                raise AccountNotFoundError(manager_account_id)
            if manager.get("role") != AccountRole.MANAGER.value:
                raise LinkingRoleError(manager_account_id, AccountRole.MANAGER.value)

            data = tx.snapshot[key]
            if data is None:
                raise InvalidOrExpiredCodeError()
            code = LinkingCode.model_validate(data)
            now = self._clock()
            if not code.is_redeemable(now):
                raise InvalidOrExpiredCodeError()

            dependent_id = code.owner_account_id
            dependent_key = self._accounts.key(dependent_id)
            dependent = await tx.get(dependent_key)
            if dependent is None or dependent.get("role") != AccountRole.DEPENDENT.value:
                raise InvalidOrExpiredCodeError()

            previous_manager = dependent.get("manager_account_id")
            if previous_manager and previous_manager != manager_account_id:
                logger.info("Dependent %s moves from manager %s", dependent_id, previous_manager)

            tx.set(
                key,
                {
                    "used": True,
                    "used_by_account_id": manager_account_id,
                    "used_at": now.isoformat(),
                },
                merge=True,
            )
            tx.set(
                dependent_key,
                {"manager_account_id": manager_account_id, "updated_at": now.isoformat()},
                merge=True,
            )
            entry = RosterEntry(dependent_account_id=dependent_id, linked_at=now)
            tx.set(roster_key(manager_account_id, dependent_id), entry.model_dump(mode="json"))

            return LinkResult(
                manager_account_id=manager_account_id,
                dependent_account_id=dependent_id,
                linked_at=now,
            )

        result = await run_with_retry(
            lambda: self._store.transact([key, manager_key], write),
            policy=self._policy,
            operation_name="linking_code_redeem",
        )
        link = result.value

        logger.info("Linked dependent %s to manager %s", link.dependent_account_id, manager_account_id)
        await self._audit.record(
            actor_id=manager_account_id,
            action="linking_code.redeemed",
            entity="accounts",
            entity_id=link.dependent_account_id,
            data={"manager_account_id": manager_account_id},
        )
        return link
