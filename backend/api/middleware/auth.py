"""
Bearer token authentication.

Validates identity tokens through the credential gateway and exposes the
caller as an AuthenticatedUser. Account ids used by the routes always come
from here.
"""

from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from shared.models import AuthenticatedUser
from modules.credentials.exceptions import MissingTokenError
from modules.credentials.interfaces import ICredentialGateway

from ..dependencies import get_credential_gateway

# Bearer token extractor
bearer_scheme = HTTPBearer(auto_error=False)


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """Raw bearer token, required."""
    if credentials is None:
        raise MissingTokenError("Missing authorization header")
    return credentials.credentials


async def get_current_user(
    token: str = Depends(get_bearer_token),
    gateway: ICredentialGateway = Depends(get_credential_gateway),
) -> AuthenticatedUser:
    """
    Dependency that requires authentication.

    Usage:
        @router.get("/protected")
        async def protected_route(user: AuthenticatedUser = Depends(get_current_user)):
            return {"user_id": user.id}
    """
    return await gateway.validate_token(token)
