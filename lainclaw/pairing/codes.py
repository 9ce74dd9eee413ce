"""
Pairing code generation.

Codes are 8 characters drawn from a 32-symbol alphabet without the
confusable characters 0, O, 1 and I.
"""

import secrets

from lainclaw.pairing.errors import PairingCodeExhaustedError

PAIRING_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
PAIRING_CODE_LENGTH = 8
MAX_CODE_ATTEMPTS = 500


def generate_pairing_code(length: int = PAIRING_CODE_LENGTH) -> str:
    """Generate a random pairing code (e.g. "A7JKPC29").

    secrets.choice draws each index with rejection sampling, so every symbol
    is equally likely.
    """
    return "".join(secrets.choice(PAIRING_CODE_ALPHABET) for _ in range(length))


def generate_unique_code(existing: set[str], attempts: int = MAX_CODE_ATTEMPTS) -> str:
    """Generate a code that is not in `existing` (compared upper-case)."""
    taken = {c.upper() for c in existing}
    for _ in range(attempts):
        code = generate_pairing_code()
        if code not in taken:
            return code
    raise PairingCodeExhaustedError("Failed to generate unique pairing code")


def normalize_pairing_code(raw: str | None) -> str:
    """Trim and upper-case a code typed by an administrator."""
    if not isinstance(raw, str):
        return ""
    return raw.strip().upper()


def is_valid_pairing_code(code: str) -> bool:
    """Check code format (length and alphabet)."""
    if not code or len(code) != PAIRING_CODE_LENGTH:
        return False
    return all(c in PAIRING_CODE_ALPHABET for c in code)
