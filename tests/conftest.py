"""
tests/conftest.py -- Shared test fixtures for credgate unit and integration tests.

This module provides:
  - store: fresh in-memory AccountStore per test (unit tests)
  - codec: TokenCodec with a fixed test key and a one-minute TTL
  - _patch_lifespan(): wires test store + codec into app.state, bypassing real startup
  - api_client: TestClient with an admin account and its token

Design: TestClient runs sync route handlers in a thread pool. AccountStore
gives in-memory URLs a StaticPool, so every worker thread sees the same
database. The API fixture names its database after the test module, which
keeps one module's accounts out of the next.

Environment must be set before any auth/core/api import:
  DEBUG=true          -- get_settings() auto-generates SECRET_KEY instead of raising
  BCRYPT_ROUNDS=4     -- minimum bcrypt cost keeps the suite fast (allowed in debug only)
  LOGIN_RATE_LIMIT    -- high enough that the suite never trips the limiter
  ALLOWED_HOSTS       -- TestClient sends Host: testserver
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# CRITICAL: set before any credgate import so get_settings() sees them.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth import accounts
from auth.store import AccountStore
from auth.tokens import TokenCodec

TEST_SECRET = "test-secret-key-0123456789abcdef-0123456789"

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "adminpass123"


# ---------------------------------------------------------------------------
# Unit-test fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[AccountStore, None, None]:
    """Fresh in-memory store with the unique email index in place."""
    s = AccountStore("sqlite:///:memory:")
    s.ensure_unique_index("email")
    yield s
    s.close()


@pytest.fixture
def codec() -> TokenCodec:
    return TokenCodec(secret_key=TEST_SECRET, ttl_seconds=60)


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


@dataclass
class ApiContext:
    client: TestClient
    store: AccountStore
    codec: TokenCodec
    admin_id: str
    admin_token: str

    def headers(self, token: str) -> dict[str, str]:
        return {"X-Auth-Token": token}


def _patch_lifespan(store: AccountStore, codec: TokenCodec):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test objects into app.state so TestClient routes see
    an isolated store rather than the configured database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.account_store = store
        app.state.token_codec = codec
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[ApiContext, None, None]:
    """Yield an ApiContext for API integration tests.

    One store per test module (the module name is part of the DB name), with
    an admin account created before the client starts.
    """
    db_name = request.module.__name__.replace(".", "_")
    store = AccountStore(f"sqlite:///file:{db_name}?mode=memory&cache=shared&uri=true")
    store.ensure_unique_index("email")
    codec = TokenCodec(secret_key=TEST_SECRET, ttl_seconds=3600)

    admin = accounts.register(store, ADMIN_EMAIL, ADMIN_PASSWORD, roles=["admin", "user"])
    admin_token = codec.issue(admin.id, admin.roles)

    app.router.lifespan_context = _patch_lifespan(store, codec)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiContext(client=client, store=store, codec=codec, admin_id=admin.id, admin_token=admin_token)

    store.close()
