"""
Linking code endpoints.

Dependents mint codes; managers redeem them.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from shared.models import AuthenticatedUser
from modules.linking.interfaces import ILinkingCodeService
from modules.linking.models import GeneratedCode, LinkResult

from ..dependencies import get_linking_service
from ..middleware.auth import get_current_user

router = APIRouter()


class RedeemRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=32)


@router.post("/codes", response_model=GeneratedCode, status_code=201)
async def generate_code(
    user: AuthenticatedUser = Depends(get_current_user),
    service: ILinkingCodeService = Depends(get_linking_service),
) -> GeneratedCode:
    """
    Mint a linking code for the calling dependent.

    The plaintext code is only ever returned here.
    """
    return await service.generate(user.id)


@router.post("/redeem", response_model=LinkResult)
async def redeem_code(
    request: RedeemRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    service: ILinkingCodeService = Depends(get_linking_service),
) -> LinkResult:
    """Redeem a code as the calling manager. Case and spacing are ignored."""
    return await service.redeem(request.code, user.id)
