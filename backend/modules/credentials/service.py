"""
Credential gateway implementations.

Provides both in-memory (for testing and local development) and
Supabase Auth-backed (for production) implementations of the gateway.
Both issue / accept HS256 identity tokens with Supabase's claim layout, so
token validation is shared.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import jwt
from supabase import AuthApiError, AuthError, Client

from shared.config import get_settings
from shared.database import get_supabase_anon_client
from shared.models import AuthenticatedUser

from .exceptions import (
    CredentialProviderError,
    CredentialRefreshError,
    EmailInUseError,
    ExpiredTokenError,
    InvalidEmailError,
    InvalidTokenError,
    MissingTokenError,
    PopupClosedError,
    UnauthorizedDomainError,
    UserNotFoundError,
    WeakPasswordError,
    WrongPasswordError,
)
from .models import CredentialSession, ProviderIdentity, TokenPayload

logger = logging.getLogger(__name__)

TOKEN_AUDIENCE = "authenticated"
# Tokens closer than this to expiry are refreshed even without ``force``
REFRESH_MARGIN = timedelta(seconds=60)


def decode_access_token(token: Optional[str], secret: str) -> TokenPayload:
    """
    Decode and validate an HS256 identity token.

    Raises:
        MissingTokenError, ExpiredTokenError, InvalidTokenError
    """
    if not token:
        raise MissingTokenError()
    if not secret:
        raise InvalidTokenError("Server authentication not configured")

    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=["HS256"],
            audience=TOKEN_AUDIENCE,
        )
    except jwt.ExpiredSignatureError:
        raise ExpiredTokenError()
    except jwt.InvalidTokenError as e:
        raise InvalidTokenError(f"Invalid token: {e}")

    return TokenPayload(**payload)


def user_from_payload(payload: TokenPayload) -> AuthenticatedUser:
    """Convert a decoded token into the request identity model."""
    return AuthenticatedUser(
        id=payload.sub,
        email=payload.email,
        email_verified=payload.email_confirmed_at is not None,
        last_sign_in=datetime.fromtimestamp(payload.iat, tz=timezone.utc),
    )


def _expires_soon(token: str) -> bool:
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError:
        return True
    exp = claims.get("exp")
    if exp is None:
        return True
    return datetime.fromtimestamp(exp, tz=timezone.utc) - datetime.now(timezone.utc) < REFRESH_MARGIN


# -----------------------------------------------------------------------------
# In-memory gateway
# -----------------------------------------------------------------------------


@dataclass
class _ProviderUser:
    account_id: str
    email: Optional[str]
    password: Optional[str]
    provider: str
    display_name: Optional[str] = None
    email_verified: bool = False


class InMemoryCredentialGateway:
    """
    Identity provider kept in process memory.

    For testing and development. Use SupabaseCredentialGateway for
    production. Password identities are unique per lower-cased email, like
    a real provider; federated identities are separate accounts even when
    they share an email with a password identity, which is exactly the
    situation the email claim ledger exists for.
    """

    MIN_PASSWORD_LENGTH = 6

    def __init__(
        self,
        jwt_secret: str = "local-development-secret",
        token_ttl: timedelta = timedelta(hours=1),
        allowed_providers: tuple[str, ...] = ("google",),
    ):
        self._secret = jwt_secret
        self._token_ttl = token_ttl
        self._allowed_providers = allowed_providers

        self._users: dict[str, _ProviderUser] = {}
        self._password_index: dict[str, str] = {}
        self._federated_tokens: dict[str, str] = {}
        self._redirect_codes: dict[str, str] = {}
        self._refresh_tokens: dict[str, str] = {}

        # Observable side effects
        self.refresh_count = 0
        self.signed_out: list[str] = []
        self.outbox: list[dict[str, Any]] = []

    def _issue(self, user: _ProviderUser) -> tuple[str, str]:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": user.account_id,
            "email": user.email,
            "email_confirmed_at": now.isoformat() if user.email_verified else None,
            "aud": TOKEN_AUDIENCE,
            "role": "authenticated",
            "iat": int(now.timestamp()),
            "exp": int((now + self._token_ttl).timestamp()),
            "jti": uuid.uuid4().hex,
            "app_metadata": {"provider": user.provider},
        }
        access_token = jwt.encode(payload, self._secret, algorithm="HS256")
        refresh_token = uuid.uuid4().hex
        self._refresh_tokens[refresh_token] = user.account_id
        return access_token, refresh_token

    def _session(self, user: _ProviderUser) -> CredentialSession:
        access_token, refresh_token = self._issue(user)
        return CredentialSession(
            account_id=user.account_id,
            email=user.email,
            display_name=user.display_name,
            provider=user.provider,
            email_verified=user.email_verified,
            access_token=access_token,
            refresh_token=refresh_token,
        )

    def _new_user(self, **fields: Any) -> _ProviderUser:
        user = _ProviderUser(account_id=uuid.uuid4().hex, **fields)
        self._users[user.account_id] = user
        return user

    # -- test / development helpers ------------------------------------------

    def register_federated_identity(
        self,
        provider: str,
        id_token: str,
        email: Optional[str],
        display_name: Optional[str] = None,
        email_verified: bool = True,
    ) -> str:
        """Make ``id_token`` a valid popup result for a new federated identity."""
        user = self._new_user(
            email=email,
            password=None,
            provider=provider,
            display_name=display_name,
            email_verified=email_verified,
        )
        self._federated_tokens[id_token] = user.account_id
        return user.account_id

    def register_redirect_code(
        self,
        auth_code: str,
        provider: str,
        email: Optional[str],
        display_name: Optional[str] = None,
    ) -> str:
        """Make ``auth_code`` redeemable once by complete_federated_redirect."""
        user = self._new_user(
            email=email,
            password=None,
            provider=provider,
            display_name=display_name,
            email_verified=True,
        )
        self._redirect_codes[auth_code] = user.account_id
        return user.account_id

    def verify_email(self, account_id: str) -> None:
        self._users[account_id].email_verified = True

    # -- ICredentialGateway ---------------------------------------------------

    async def create_account_with_password(self, email: str, password: str) -> CredentialSession:
        await asyncio.sleep(0)
        address = (email or "").strip()
        if "@" not in address or address.startswith("@") or address.endswith("@"):
            raise InvalidEmailError(email)
        if len(password or "") < self.MIN_PASSWORD_LENGTH:
            raise WeakPasswordError(
                f"Password must be at least {self.MIN_PASSWORD_LENGTH} characters"
            )
        index_key = address.lower()
        if index_key in self._password_index:
            raise EmailInUseError(address)

        user = self._new_user(email=address, password=password, provider="email")
        self._password_index[index_key] = user.account_id
        return self._session(user)

    async def sign_in_with_password(self, email: str, password: str) -> CredentialSession:
        await asyncio.sleep(0)
        account_id = self._password_index.get((email or "").strip().lower())
        if account_id is None:
            raise UserNotFoundError(email)
        user = self._users[account_id]
        if user.password != password:
            raise WrongPasswordError()
        return self._session(user)

    async def sign_in_with_federated_token(self, provider: str, id_token: str) -> CredentialSession:
        await asyncio.sleep(0)
        if provider not in self._allowed_providers:
            raise UnauthorizedDomainError(provider)
        if not id_token:
            raise PopupClosedError()
        account_id = self._federated_tokens.get(id_token)
        if account_id is None:
            raise InvalidTokenError("Unknown federated identity token")
        return self._session(self._users[account_id])

    async def complete_federated_redirect(
        self,
        auth_code: str,
        code_verifier: str = "",
    ) -> CredentialSession:
        await asyncio.sleep(0)
        account_id = self._redirect_codes.pop(auth_code, None)
        if account_id is None:
            raise PopupClosedError("Federated redirect expired or was already used")
        return self._session(self._users[account_id])

    async def refresh_credential(self, session: CredentialSession, force: bool = False) -> str:
        await asyncio.sleep(0)
        if not force and session.access_token and not _expires_soon(session.access_token):
            return session.access_token

        account_id = self._refresh_tokens.pop(session.refresh_token, None)
        if account_id is None or account_id != session.account_id:
            raise CredentialRefreshError("Session is signed out or unknown")

        access_token, refresh_token = self._issue(self._users[account_id])
        session.access_token = access_token
        session.refresh_token = refresh_token
        self.refresh_count += 1
        return access_token

    async def get_identity(self, session: CredentialSession) -> ProviderIdentity:
        await asyncio.sleep(0)
        payload = decode_access_token(session.access_token, self._secret)
        user = self._users.get(payload.sub)
        if user is None:
            raise InvalidTokenError("Token subject no longer exists")
        return ProviderIdentity(
            account_id=user.account_id,
            email=user.email,
            email_verified=user.email_verified,
            provider=user.provider,
        )

    async def sign_out(self, session: CredentialSession) -> None:
        await asyncio.sleep(0)
        self._refresh_tokens.pop(session.refresh_token, None)
        self.signed_out.append(session.account_id)

    async def send_verification_email(self, session: CredentialSession) -> None:
        await asyncio.sleep(0)
        self.outbox.append({"kind": "verify_email", "email": session.email})

    async def send_password_reset(self, email: str) -> None:
        await asyncio.sleep(0)
        if (email or "").strip().lower() in self._password_index:
            self.outbox.append({"kind": "password_reset", "email": email.strip()})

    async def validate_token(self, token: str) -> AuthenticatedUser:
        return user_from_payload(decode_access_token(token, self._secret))


# -----------------------------------------------------------------------------
# Supabase Auth gateway
# -----------------------------------------------------------------------------

# Supabase Auth error codes grouped by the error kind they translate to
_EMAIL_IN_USE_CODES = {"user_already_exists", "email_exists", "identity_already_exists"}
_WEAK_PASSWORD_CODES = {"weak_password"}
_INVALID_EMAIL_CODES = {"email_address_invalid", "email_address_not_authorized", "validation_failed"}
_WRONG_PASSWORD_CODES = {"invalid_credentials"}
_USER_NOT_FOUND_CODES = {"user_not_found"}
_FLOW_ABANDONED_CODES = {"flow_state_not_found", "flow_state_expired", "bad_oauth_callback", "bad_oauth_state", "bad_code_verifier"}
_PROVIDER_DISABLED_CODES = {"provider_disabled", "oauth_provider_not_supported", "email_provider_disabled"}
_SESSION_GONE_CODES = {"session_not_found", "session_expired", "refresh_token_not_found", "refresh_token_already_used"}


class SupabaseCredentialGateway:
    """
    Credential gateway backed by Supabase Auth.

    Supabase clients hold exactly one session, so every operation runs on a
    fresh client from ``client_factory`` and the session state travels in
    the CredentialSession instead. The auth client is synchronous, so each
    provider round-trip runs in a worker thread.
    """

    def __init__(
        self,
        client_factory: Callable[[], Client] = get_supabase_anon_client,
        jwt_secret: Optional[str] = None,
        password_reset_redirect: Optional[str] = None,
    ):
        self._client_factory = client_factory
        self._secret = jwt_secret if jwt_secret is not None else get_settings().supabase_jwt_secret
        self._password_reset_redirect = password_reset_redirect

    def _translate(self, e: AuthError, email: str = "", provider: str = "") -> Exception:
        code = getattr(e, "code", None) or ""
        message = getattr(e, "message", None) or str(e)
        if code in _EMAIL_IN_USE_CODES:
            return EmailInUseError(email)
        if code in _WEAK_PASSWORD_CODES:
            return WeakPasswordError(message)
        if code in _INVALID_EMAIL_CODES:
            return InvalidEmailError(email)
        if code in _WRONG_PASSWORD_CODES:
            return WrongPasswordError()
        if code in _USER_NOT_FOUND_CODES:
            return UserNotFoundError(email)
        if code in _FLOW_ABANDONED_CODES:
            return PopupClosedError(message)
        if code in _PROVIDER_DISABLED_CODES:
            return UnauthorizedDomainError(provider or "email")
        if code in _SESSION_GONE_CODES:
            return CredentialRefreshError(message)
        return CredentialProviderError(message, provider_code=code)

    @staticmethod
    def _to_session(response: Any, provider: str) -> CredentialSession:
        user = response.user
        if user is None:
            raise CredentialProviderError("Provider returned no user")
        session = response.session
        metadata = user.user_metadata or {}
        return CredentialSession(
            account_id=user.id,
            email=user.email,
            display_name=metadata.get("full_name") or metadata.get("name"),
            provider=(user.app_metadata or {}).get("provider", provider),
            email_verified=user.email_confirmed_at is not None,
            access_token=session.access_token if session else "",
            refresh_token=session.refresh_token if session else "",
        )

    async def create_account_with_password(self, email: str, password: str) -> CredentialSession:
        client = self._client_factory()
        try:
            response = await asyncio.to_thread(client.auth.sign_up, {"email": email, "password": password})
        except AuthApiError as e:
            raise self._translate(e, email=email)

        # With email confirmation enabled Supabase answers a duplicate
        # sign-up with an obfuscated user that has no identities.
        if response.user is not None and response.user.identities == []:
            raise EmailInUseError(email)
        return self._to_session(response, "email")

    async def sign_in_with_password(self, email: str, password: str) -> CredentialSession:
        client = self._client_factory()
        try:
            response = await asyncio.to_thread(
                client.auth.sign_in_with_password, {"email": email, "password": password}
            )
        except AuthApiError as e:
            raise self._translate(e, email=email)
        return self._to_session(response, "email")

    async def sign_in_with_federated_token(self, provider: str, id_token: str) -> CredentialSession:
        if not id_token:
            raise PopupClosedError()
        client = self._client_factory()
        try:
            response = await asyncio.to_thread(
                client.auth.sign_in_with_id_token, {"provider": provider, "token": id_token}
            )
        except AuthApiError as e:
            raise self._translate(e, provider=provider)
        return self._to_session(response, provider)

    async def complete_federated_redirect(
        self,
        auth_code: str,
        code_verifier: str = "",
    ) -> CredentialSession:
        client = self._client_factory()
        try:
            response = await asyncio.to_thread(client.auth.exchange_code_for_session, {
                "auth_code": auth_code,
                "code_verifier": code_verifier,
            })
        except AuthApiError as e:
            raise self._translate(e)
        return self._to_session(response, "oauth")

    async def refresh_credential(self, session: CredentialSession, force: bool = False) -> str:
        if not force and session.access_token and not _expires_soon(session.access_token):
            return session.access_token
        if not session.refresh_token:
            raise CredentialRefreshError("Session has no refresh token")

        client = self._client_factory()
        try:
            response = await asyncio.to_thread(client.auth.refresh_session, session.refresh_token)
        except AuthError as e:
            raise CredentialRefreshError(getattr(e, "message", None) or str(e))
        if response.session is None:
            raise CredentialRefreshError("Provider returned no session")

        session.access_token = response.session.access_token
        session.refresh_token = response.session.refresh_token
        return session.access_token

    async def get_identity(self, session: CredentialSession) -> ProviderIdentity:
        if not session.access_token:
            raise MissingTokenError()
        client = self._client_factory()
        try:
            response = await asyncio.to_thread(client.auth.get_user, session.access_token)
        except AuthApiError as e:
            if getattr(e, "code", None) in {"bad_jwt", "session_expired", "session_not_found"}:
                raise ExpiredTokenError()
            raise InvalidTokenError(getattr(e, "message", None) or str(e))
        if response is None or response.user is None:
            raise InvalidTokenError("Token does not identify a user")

        user = response.user
        return ProviderIdentity(
            account_id=user.id,
            email=user.email,
            email_verified=user.email_confirmed_at is not None,
            provider=(user.app_metadata or {}).get("provider", "email"),
        )

    async def sign_out(self, session: CredentialSession) -> None:
        if not session.access_token or not session.refresh_token:
            return
        client = self._client_factory()
        try:
            await asyncio.to_thread(client.auth.set_session, session.access_token, session.refresh_token)
            await asyncio.to_thread(client.auth.sign_out)
        except AuthError as e:
            raise CredentialProviderError(
                getattr(e, "message", None) or str(e), provider_code=getattr(e, "code", "") or ""
            )

    async def send_verification_email(self, session: CredentialSession) -> None:
        if not session.email:
            return
        client = self._client_factory()
        try:
            await asyncio.to_thread(client.auth.resend, {"type": "signup", "email": session.email})
        except AuthApiError as e:
            raise self._translate(e, email=session.email)

    async def send_password_reset(self, email: str) -> None:
        client = self._client_factory()
        options = {"redirect_to": self._password_reset_redirect} if self._password_reset_redirect else {}
        try:
            await asyncio.to_thread(client.auth.reset_password_for_email, email, options)
        except AuthApiError as e:
            translated = self._translate(e, email=email)
            if isinstance(translated, UserNotFoundError):
                logger.debug("Password reset requested for unknown email")
                return
            raise translated

    async def validate_token(self, token: str) -> AuthenticatedUser:
        return user_from_payload(decode_access_token(token, self._secret))


# Singleton instance
_gateway: Optional[InMemoryCredentialGateway | SupabaseCredentialGateway] = None


def get_credential_gateway() -> InMemoryCredentialGateway | SupabaseCredentialGateway:
    """
    Get the credential gateway singleton.

    Returns the Supabase-backed gateway when ``credential_backend`` is
    ``supabase``, otherwise an in-memory gateway signing tokens with the
    configured JWT secret.
    """
    global _gateway
    if _gateway is None:
        settings = get_settings()
        if settings.credential_backend == "supabase":
            _gateway = SupabaseCredentialGateway(jwt_secret=settings.supabase_jwt_secret)
        else:
            _gateway = InMemoryCredentialGateway(
                jwt_secret=settings.supabase_jwt_secret or "local-development-secret"
            )
    return _gateway


def reset_credential_gateway() -> None:
    """Reset the gateway singleton (for testing)."""
    global _gateway
    _gateway = None
