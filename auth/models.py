"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and services do
the work; the record never hashes or compares passwords itself.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class User:
    """A shop customer account.

    email is the login handle. UserStore normalizes it (strip + lower) before
    every read and write, so lookups are case-insensitive.

    password is the transient plaintext slot. Assigning it marks the password
    as changed; the next UserStore.save() hashes it into password_hash and
    resets it to None. It is excluded from repr so it never lands in logs.

    id is None until the first save, when the store assigns an opaque uuid4 hex.
    """

    email: str
    full_name: str = ""
    id: str | None = None
    password_hash: str | None = None
    created_at: str | None = None
    password: str | None = field(default=None, repr=False, compare=False)
