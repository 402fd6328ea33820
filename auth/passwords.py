"""
auth/passwords.py -- bcrypt password hashing and verification.

Using bcrypt directly rather than passlib[bcrypt]: passlib's wrap-bug detection
feeds bcrypt 4.x a password longer than 72 bytes, which it rejects. Direct
bcrypt usage has no compatibility shim and is actively maintained.

Every hash gets a fresh salt from bcrypt.gensalt(); salt, cost and digest are
encoded together in the returned "$2b$..." string. bcrypt.checkpw() recomputes
with the embedded salt/cost and compares digests in constant time.

Input rules:
  - empty password -> ValidationError (never hashed)
  - password over 72 UTF-8 bytes -> ValidationError. bcrypt only reads the
    first 72 bytes; recent bcrypt releases raise instead of truncating.

Nothing in this module logs passwords or digests.

Layer rule: no imports from api/. core/ is allowed.
"""

from __future__ import annotations

import bcrypt

from auth.errors import ValidationError
from core.config import get_settings

BCRYPT_MAX_BYTES = 72


def _encode(plain: str) -> bytes:
    if not plain:
        raise ValidationError("Password must not be empty.")
    encoded = plain.encode("utf-8")
    if len(encoded) > BCRYPT_MAX_BYTES:
        raise ValidationError(f"Password must be at most {BCRYPT_MAX_BYTES} bytes.")
    return encoded


def hash_password(plain: str, rounds: int | None = None) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    rounds defaults to Settings.bcrypt_rounds (12 in production).
    """
    cost = rounds if rounds is not None else get_settings().bcrypt_rounds
    return bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=cost)).decode("utf-8")


def _verifiable(plain: str) -> bytes | None:
    """UTF-8 bytes of plain, or None if bcrypt could never have hashed it."""
    encoded = plain.encode("utf-8") if plain else b""
    if not encoded or len(encoded) > BCRYPT_MAX_BYTES:
        return None
    return encoded


# Timing equalization dummy hash [C1]. Built lazily on first use so importing
# this module does not pay a full bcrypt round at the configured cost.
_DUMMY_PLAIN = "credgate_timing_dummy"
_dummy_hash: bytes | None = None


def _spend_one_check(encoded: bytes | None) -> None:
    global _dummy_hash
    if _dummy_hash is None:
        _dummy_hash = hash_password(_DUMMY_PLAIN).encode("utf-8")
    bcrypt.checkpw(encoded or _DUMMY_PLAIN.encode("utf-8"), _dummy_hash)


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    Returns False, never raises, for empty or over-long input and for a
    missing or malformed hash. Unusable input still costs one bcrypt check,
    so it is not answered faster than a wrong password.
    """
    encoded = _verifiable(plain)
    if encoded is None or not hashed:
        _spend_one_check(encoded)
        return False
    try:
        return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def equalize_timing(plain: str) -> None:
    """Spend one bcrypt verification against a throwaway hash.

    authenticate() calls this when the email is unknown so the response takes
    as long as a wrong-password attempt and does not reveal which emails exist.
    Empty and over-long input is swapped for a fixed in-limit value.
    """
    _spend_one_check(_verifiable(plain))
