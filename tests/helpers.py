"""Test helpers shared by conftest.py and the test modules."""

from __future__ import annotations

import uuid

from auth.models import User
from auth.store import UserStore

TEST_SECRET = "test-secret-key-" + "x" * 32
TEST_ROUNDS = 4
SAMPLE_PASSWORD = "correct horse battery staple"


def make_store() -> UserStore:
    """Create an isolated named shared-memory SQLite store.

    Named URIs let every pooled connection (TestClient runs sync handlers in
    worker threads) see the same in-memory DB. The uuid keeps stores apart.
    """
    url = f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    return UserStore(url, bcrypt_rounds=TEST_ROUNDS)


def make_user(store: UserStore, email: str = "customer@example.com", password: str = SAMPLE_PASSWORD) -> User:
    return store.save(User(email=email, full_name="Sample Customer", password=password))
