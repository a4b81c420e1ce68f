"""
Credential gateway module.

Thin adapter over the external identity provider: password and federated
sign-in, account creation, credential refresh, sign-out and out-of-band
emails.

Public API:
- ICredentialGateway: Interface for identity provider operations
- CredentialSession: A signed-in provider session
- ProviderIdentity: Provider-verified identity of a session holder
- InMemoryCredentialGateway / SupabaseCredentialGateway: Implementations
"""

from .interfaces import ICredentialGateway
from .models import CredentialSession, ProviderIdentity, TokenPayload
from .exceptions import (
    InvalidTokenError,
    ExpiredTokenError,
    MissingTokenError,
    EmailInUseError,
    WeakPasswordError,
    InvalidEmailError,
    UserNotFoundError,
    WrongPasswordError,
    PopupClosedError,
    UnauthorizedDomainError,
    CredentialRefreshError,
    CredentialProviderError,
)
from .service import (
    InMemoryCredentialGateway,
    SupabaseCredentialGateway,
    decode_access_token,
    get_credential_gateway,
    reset_credential_gateway,
)

__all__ = [
    # Interface
    "ICredentialGateway",
    # Models
    "CredentialSession",
    "ProviderIdentity",
    "TokenPayload",
    # Exceptions
    "InvalidTokenError",
    "ExpiredTokenError",
    "MissingTokenError",
    "EmailInUseError",
    "WeakPasswordError",
    "InvalidEmailError",
    "UserNotFoundError",
    "WrongPasswordError",
    "PopupClosedError",
    "UnauthorizedDomainError",
    "CredentialRefreshError",
    "CredentialProviderError",
    # Implementations
    "InMemoryCredentialGateway",
    "SupabaseCredentialGateway",
    "decode_access_token",
    "get_credential_gateway",
    "reset_credential_gateway",
]
