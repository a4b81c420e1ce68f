"""
Linking module interfaces.
"""

from typing import Protocol, runtime_checkable

from .models import GeneratedCode, LinkResult


@runtime_checkable
class ILinkingCodeService(Protocol):
    """Interface for minting and redeeming linking codes."""

    async def generate(self, dependent_account_id: str) -> GeneratedCode:
        """
        Mint a code for a dependent account. The plaintext is returned once.

        Raises:
            AccountNotFoundError, LinkingRoleError, CodeGenerationError
        """
        ...

    async def redeem(self, plaintext_code: str, manager_account_id: str) -> LinkResult:
        """
        Consume a code and link its dependent to the manager.

        Raises:
            InvalidOrExpiredCodeError: Unknown, used or expired code.
            LinkingRoleError: If the redeemer is not a manager.
        """
        ...
