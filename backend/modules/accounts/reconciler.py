"""
Account reconciler.

Creates exactly one Account per signup attempt and keeps it consistent
with the email claim ledger across the direct (password) and federated
signup paths. Also owns the sign-in flows that need the Account document
(portal role check, federated "is there an account yet" decision).
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from shared.audit import AuditLog
from shared.config import get_settings
from shared.documents import IDocumentStore, Transaction
from shared.exceptions import CareLinkError, ValidationError
from shared.models import utc_now
from shared.retry import RetryPolicy, run_with_retry

from modules.credentials.exceptions import EmailInUseError
from modules.credentials.interfaces import ICredentialGateway
from modules.credentials.models import CredentialSession

from .exceptions import (
    AccountDisabledError,
    AccountNotFoundError,
    AccountRoleMismatchError,
    EmailAlreadyRegisteredError,
    IdentityMismatchError,
    InvalidSignupError,
)
from .ledger import EmailClaimLedger
from .models import (
    Account,
    AccountProfile,
    AccountRole,
    AccountStatus,
    ClaimOutcome,
    ClaimResult,
    FederatedSignInResult,
    FederatedSignInStatus,
    SignInResult,
    SignupResult,
    normalize_email,
)
from .repository import AccountRepository

logger = logging.getLogger(__name__)


class AccountReconciler:
    """
    Orchestrates provider identities, the email claim ledger and Account documents.

    The claim and the account write always happen in one store transaction,
    so the ledger and the account's existence never disagree past a commit.
    """

    def __init__(
        self,
        store: IDocumentStore,
        gateway: ICredentialGateway,
        ledger: Optional[EmailClaimLedger] = None,
        policy: Optional[RetryPolicy] = None,
        audit: Optional[AuditLog] = None,
        clock: Callable[[], datetime] = utc_now,
        profile_load_attempts: Optional[int] = None,
    ):
        self._store = store
        self._gateway = gateway
        self._policy = policy or RetryPolicy.from_settings()
        self._ledger = ledger or EmailClaimLedger(store, self._policy, clock)
        self._accounts = AccountRepository(store)
        self._audit = audit or AuditLog(store, clock)
        self._clock = clock
        self._profile_load_attempts = (
            profile_load_attempts
            if profile_load_attempts is not None
            else get_settings().profile_load_attempts
        )

    # -------------------------------------------------------------------------
    # Signup
    # -------------------------------------------------------------------------

    async def signup_direct(
        self,
        email: str,
        password: str,
        role: AccountRole,
        profile: Optional[AccountProfile] = None,
    ) -> SignupResult:
        """
        Create a password identity at the provider, then claim the email and
        write the Account in one transaction.

        A conflicting claim leaves the provider identity without an Account;
        it is signed out but not deleted (that needs re-authentication).
        """
        normalized = normalize_email(email)
        # Fail before the provider identity exists
        self._ledger.claim_key(normalized)

        try:
            session = await self._gateway.create_account_with_password(email.strip(), password)
        except EmailInUseError:
            raise EmailAlreadyRegisteredError(normalized)

        await self._force_refresh(session)

        status = AccountStatus.ACTIVE if session.email_verified else AccountStatus.PENDING_VERIFICATION
        try:
            claim, account = await self._claim_and_write(
                session, normalized, email.strip(), role, status, profile
            )
        except EmailAlreadyRegisteredError:
            logger.warning(
                "Direct signup for %s lost the email claim; provider identity %s left without an account",
                normalized, session.account_id,
            )
            await self._sign_out_quietly(session)
            raise

        if account.status == AccountStatus.PENDING_VERIFICATION:
            await self._send_verification_quietly(session)

        return SignupResult(
            account=account,
            claim_outcome=claim.outcome,
            access_token=session.access_token,
            refresh_token=session.refresh_token,
        )

    async def complete_federated_signup(
        self,
        session: CredentialSession,
        session_account_id: str,
        claimed_email: str,
        role: AccountRole,
        profile: Optional[AccountProfile] = None,
    ) -> SignupResult:
        """
        Create the Account for a caller already signed in with a federated provider.

        The provider is asked who holds ``session``; the answer must match
        ``session_account_id`` and ``claimed_email``. An identity without an
        email cannot claim one. On a lost claim the provider session is
        signed out so the caller is never left authenticated without a
        profile.
        """
        identity = await self._gateway.get_identity(session)
        if identity.account_id != session_account_id:
            raise IdentityMismatchError()

        normalized = normalize_email(claimed_email)
        if not normalized:
            raise InvalidSignupError("Email is required")
        if identity.email is None:
            raise IdentityMismatchError("Signed-in identity has no email to claim")
        if normalize_email(identity.email) != normalized:
            raise IdentityMismatchError("Claimed email does not match the signed-in identity")

        await self._force_refresh(session)

        status = AccountStatus.ACTIVE if identity.email_verified else AccountStatus.PENDING_VERIFICATION
        try:
            claim, account = await self._claim_and_write(
                session, normalized, claimed_email.strip(), role, status, profile
            )
        except EmailAlreadyRegisteredError:
            logger.warning(
                "Federated signup for %s lost the email claim; signing out %s",
                normalized, session_account_id,
            )
            await self._sign_out_quietly(session)
            raise

        return SignupResult(
            account=account,
            claim_outcome=claim.outcome,
            access_token=session.access_token,
            refresh_token=session.refresh_token,
        )

    async def _claim_and_write(
        self,
        session: CredentialSession,
        normalized: str,
        email: str,
        role: AccountRole,
        status: AccountStatus,
        profile: Optional[AccountProfile],
    ) -> tuple[ClaimResult, Account]:
        account_id = session.account_id
        account_key = self._accounts.key(account_id)
        claim_key = self._ledger.claim_key(normalized)
        provided = profile.provided() if profile else {}

        async def write(tx: Transaction) -> tuple[ClaimResult, Account]:
            claim = await self._ledger.try_claim_in(tx, normalized, account_id)
            if not claim.succeeded:
                raise EmailAlreadyRegisteredError(normalized)

            now = self._clock()
            existing = await tx.get(account_key)
            if existing is None:
                account = Account(
                    id=account_id,
                    normalized_email=normalized,
                    email=email,
                    role=role,
                    status=status,
                    profile=AccountProfile(**provided),
                    created_at=now,
                    updated_at=now,
                )
                tx.set(account_key, self._accounts.to_document(account))
            else:
                # Client retry after an unknown outcome: merge new fields only
                current = self._accounts.to_model(existing)
                merged = AccountProfile(**{**current.profile.provided(), **provided})
                account = current.model_copy(update={"profile": merged, "updated_at": now})
                tx.set(
                    account_key,
                    {"profile": merged.model_dump(mode="json"), "updated_at": now.isoformat()},
                    merge=True,
                )
            return claim, account

        result = await run_with_retry(
            lambda: self._store.transact([claim_key, account_key], write),
            policy=self._policy,
            operation_name="account_signup",
            refresh_credential=lambda: self._gateway.refresh_credential(session, force=True),
        )
        claim, account = result.value

        if claim.outcome == ClaimOutcome.RECLAIMED:
            logger.info(
                "Account %s created for %s by reclaiming orphan claim of %s",
                account_id, normalized, claim.previous_owner_id,
            )
        else:
            logger.info("Account %s written for %s", account_id, normalized)

        await self._audit.record(
            actor_id=account_id,
            action="account.signup",
            entity="accounts",
            entity_id=account_id,
            data={"claim": claim.outcome.value, "role": account.role.value},
        )
        return claim, account

    # -------------------------------------------------------------------------
    # Sign-in
    # -------------------------------------------------------------------------

    async def sign_in(
        self,
        email: str,
        password: str,
        expected_role: Optional[AccountRole] = None,
    ) -> SignInResult:
        """
        Password sign-in followed by a bounded read of the Account.

        A missing account, a deactivated account or the wrong portal role
        signs the provider session out again before raising.
        """
        session = await self._gateway.sign_in_with_password((email or "").strip(), password)
        await self._force_refresh(session)

        account = await self._load_account(session)
        if account is None:
            await self._sign_out_quietly(session)
            raise AccountNotFoundError(session.account_id)
        if account.status == AccountStatus.DISABLED:
            await self._sign_out_quietly(session)
            raise AccountDisabledError(account.id)
        if expected_role is not None and account.role != expected_role:
            await self._sign_out_quietly(session)
            raise AccountRoleMismatchError(expected_role.value, account.role.value)

        if account.status == AccountStatus.PENDING_VERIFICATION and session.email_verified:
            account = await self._activate(account, session)

        return SignInResult(
            account=account,
            access_token=session.access_token,
            refresh_token=session.refresh_token,
        )

    async def begin_federated_sign_in(
        self,
        provider: str,
        id_token: str,
        expected_role: Optional[AccountRole] = None,
    ) -> FederatedSignInResult:
        session = await self._gateway.sign_in_with_federated_token(provider, id_token)
        return await self._resolve_federated(session, expected_role)

    async def resume_federated_redirect(
        self,
        auth_code: str,
        code_verifier: str = "",
        expected_role: Optional[AccountRole] = None,
    ) -> FederatedSignInResult:
        session = await self._gateway.complete_federated_redirect(auth_code, code_verifier)
        return await self._resolve_federated(session, expected_role)

    async def _resolve_federated(
        self,
        session: CredentialSession,
        expected_role: Optional[AccountRole],
    ) -> FederatedSignInResult:
        account = await self._read_account(session.account_id, session)
        if account is not None:
            if account.status == AccountStatus.DISABLED:
                await self._sign_out_quietly(session)
                raise AccountDisabledError(account.id)
            if expected_role is not None and account.role != expected_role:
                await self._sign_out_quietly(session)
                raise AccountRoleMismatchError(expected_role.value, account.role.value)
            return FederatedSignInResult(
                status=FederatedSignInStatus.SIGNED_IN,
                account_id=account.id,
                email=account.email,
                display_name=account.profile.full_name,
                account=account,
                access_token=session.access_token,
                refresh_token=session.refresh_token,
            )

        normalized = normalize_email(session.email or "")
        if normalized:
            owner = await self._ledger.get_owner(normalized)
            if owner and owner != session.account_id:
                if await self._read_account(owner, session) is not None:
                    await self._sign_out_quietly(session)
                    raise EmailAlreadyRegisteredError(normalized)

        return FederatedSignInResult(
            status=FederatedSignInStatus.PENDING_COMPLETION,
            account_id=session.account_id,
            email=session.email,
            display_name=session.display_name,
            access_token=session.access_token,
            refresh_token=session.refresh_token,
        )

    # -------------------------------------------------------------------------
    # Reads and notifications
    # -------------------------------------------------------------------------

    async def get_account(self, account_id: str) -> Account:
        account = await self._read_account(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    async def request_password_reset(self, email: str) -> None:
        address = (email or "").strip()
        if not address:
            raise ValidationError("Email is required", code="INVALID_EMAIL")
        await self._gateway.send_password_reset(address)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _read_account(
        self,
        account_id: str,
        session: Optional[CredentialSession] = None,
    ) -> Optional[Account]:
        async def refresh() -> None:
            await self._gateway.refresh_credential(session, force=True)

        return await run_with_retry(
            lambda: self._accounts.get(account_id),
            policy=self._policy,
            operation_name="account_read",
            refresh_credential=refresh if session is not None else None,
        )

    async def _load_account(self, session: CredentialSession) -> Optional[Account]:
        """Re-read a freshly signed-in account a bounded number of times."""
        for attempt in range(self._profile_load_attempts):
            account = await self._read_account(session.account_id, session)
            if account is not None:
                return account
            logger.debug(
                "Account %s not visible yet (attempt %d/%d)",
                session.account_id, attempt + 1, self._profile_load_attempts,
            )
            if attempt + 1 < self._profile_load_attempts:
                await asyncio.sleep(self._policy.delay_for(attempt))
        return None

    async def _activate(self, account: Account, session: CredentialSession) -> Account:
        key = self._accounts.key(account.id)
        now = self._clock()

        async def write(tx: Transaction) -> None:
            tx.set(
                key,
                {"status": AccountStatus.ACTIVE.value, "updated_at": now.isoformat()},
                merge=True,
            )

        await run_with_retry(
            lambda: self._store.transact([key], write),
            policy=self._policy,
            operation_name="account_activate",
            refresh_credential=lambda: self._gateway.refresh_credential(session, force=True),
        )
        logger.info("Account %s verified its email and is now active", account.id)
        return account.model_copy(update={"status": AccountStatus.ACTIVE, "updated_at": now})

    async def _force_refresh(self, session: CredentialSession) -> None:
        try:
            await self._gateway.refresh_credential(session, force=True)
        except CareLinkError as e:
            # Writes below still carry the refresh-and-retry policy.
            logger.warning("Forced credential refresh for %s failed: %s", session.account_id, e.message)

    async def _sign_out_quietly(self, session: CredentialSession) -> None:
        try:
            await self._gateway.sign_out(session)
        except CareLinkError as e:
            logger.warning("Sign-out of %s failed: %s", session.account_id, e.message)

    async def _send_verification_quietly(self, session: CredentialSession) -> None:
        try:
            await self._gateway.send_verification_email(session)
        except CareLinkError as e:
            logger.warning("Verification email for %s failed: %s", session.account_id, e.message)
