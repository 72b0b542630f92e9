"""
tests/conftest.py -- Shared test fixtures for the Konfetka shop API tests.

This module provides:
  - store / codec / service: isolated auth objects for unit tests
  - sample_user: a saved account whose password is SAMPLE_PASSWORD
  - api_client: TestClient over the real app with a patched lifespan
  - client: the module's TestClient with an emptied cookie jar

DEBUG and BCRYPT_ROUNDS must be set before any api/core import so
get_settings() auto-generates SECRET_KEY and hashing stays fast.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set env before any api/core import -- get_settings() is cached on first call.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import User
from auth.service import AuthService
from auth.sessions import SessionCodec
from auth.store import UserStore
from tests.helpers import TEST_SECRET, make_store, make_user

# ---------------------------------------------------------------------------
# Lifespan patch
# ---------------------------------------------------------------------------


def _patch_lifespan(store: UserStore, service: AuthService):
    """Return an async context manager that replaces the real lifespan.

    Wires the test store and service into app.state so routes hit the
    isolated DB rather than the file-backed one from Settings.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = store
        app.state.auth_service = service
        app.state.secure_cookies = False
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = make_store()
    yield s
    s.close()


@pytest.fixture
def codec() -> SessionCodec:
    return SessionCodec(TEST_SECRET)


@pytest.fixture
def service(store: UserStore, codec: SessionCodec) -> AuthService:
    return AuthService(store, codec)


@pytest.fixture
def sample_user(store: UserStore) -> User:
    return make_user(store)


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, User], None, None]:
    """Yield (client, user) for HTTP integration tests.

    The user's plaintext password is SAMPLE_PASSWORD. One client per module;
    tests that care about cookie state clear client.cookies themselves.
    """
    store = make_store()
    user = make_user(store)
    service = AuthService(store, SessionCodec(TEST_SECRET))

    app.router.lifespan_context = _patch_lifespan(store, service)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, user

    store.close()


@pytest.fixture
def client(api_client: tuple[TestClient, User]) -> TestClient:
    """The module client with an empty cookie jar."""
    c, _user = api_client
    c.cookies.clear()
    return c
