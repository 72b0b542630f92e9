"""
auth/passwords.py -- bcrypt password hashing.

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error.

bcrypt.gensalt() draws a fresh 128-bit salt on every call and the salt is
embedded in the resulting hash string, so two users with the same plaintext
always end up with different stored hashes, and verify_password() needs
nothing but the stored hash.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import bcrypt

DEFAULT_ROUNDS = 12


def hash_password(plain: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt only accepts 72 bytes of input (recent releases raise ValueError
    beyond that). api/models.py enforces the limit on UTF-8 encoded length
    before a password ever gets here.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    checkpw compares in constant time. Malformed hashes or non-string input
    return False instead of raising.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except (ValueError, TypeError, AttributeError):
        return False
