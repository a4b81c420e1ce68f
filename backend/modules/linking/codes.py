"""
Linking code generation and normalization.

Codes are two blocks of four characters (``XXXX-XXXX``) drawn from an
alphabet without the visually ambiguous 0/O and 1/I. Only the SHA-256
digest of the normalized code is ever stored.
"""

import hashlib
import secrets

CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
BLOCK_LENGTH = 4
BLOCK_COUNT = 2
SEPARATOR = "-"


def generate_code() -> str:
    """Random code such as ``K7QX-M2PA``."""
    blocks = [
        "".join(secrets.choice(CODE_ALPHABET) for _ in range(BLOCK_LENGTH))
        for _ in range(BLOCK_COUNT)
    ]
    return SEPARATOR.join(blocks)


def normalize_code(code: str) -> str:
    """
    Canonical form used for hashing.

    Upper-cases, drops whitespace anywhere in the input, and re-inserts the
    block separator when the code was typed as one run of characters.
    """
    compact = "".join((code or "").split()).upper()
    if SEPARATOR not in compact and len(compact) == BLOCK_LENGTH * BLOCK_COUNT:
        compact = SEPARATOR.join(
            compact[i:i + BLOCK_LENGTH] for i in range(0, len(compact), BLOCK_LENGTH)
        )
    return compact


def code_digest(code: str) -> str:
    """Hex SHA-256 of the normalized code; the LinkingCode document id."""
    return hashlib.sha256(normalize_code(code).encode("utf-8")).hexdigest()
