"""
Linking module.

Single-use, short-lived codes that let a dependent account be linked to a
managing account without either knowing the other's id.

Public API:
- ILinkingCodeService / LinkingCodeService: generate and redeem codes
- GeneratedCode, LinkResult, LinkingCode, RosterEntry: Data models
- generate_code, normalize_code, code_digest: Code helpers
"""

from .interfaces import ILinkingCodeService
from .models import GeneratedCode, LinkingCode, LinkResult, RosterEntry
from .exceptions import CodeGenerationError, InvalidOrExpiredCodeError, LinkingRoleError
from .codes import CODE_ALPHABET, code_digest, generate_code, normalize_code
from .service import LinkingCodeService, code_key, roster_key

__all__ = [
    "ILinkingCodeService",
    "GeneratedCode",
    "LinkingCode",
    "LinkResult",
    "RosterEntry",
    "CodeGenerationError",
    "InvalidOrExpiredCodeError",
    "LinkingRoleError",
    "CODE_ALPHABET",
    "code_digest",
    "generate_code",
    "normalize_code",
    "LinkingCodeService",
    "code_key",
    "roster_key",
]
