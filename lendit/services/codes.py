"""One-time handoff codes for pickup and return."""

import hmac
import secrets

CODE_LENGTH = 6


def generate_code(length=CODE_LENGTH):
    """Return a random code of uppercase hex characters."""
    return secrets.token_hex((length + 1) // 2).upper()[:length]


def codes_match(expected, submitted):
    """Exact comparison against the last issued code.

    Surrounding whitespace in the submitted value is ignored; case is not.
    """
    if not expected or not submitted or not isinstance(submitted, str):
        return False
    return hmac.compare_digest(expected.encode(), submitted.strip().encode())
