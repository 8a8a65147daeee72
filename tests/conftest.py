"""
tests/conftest.py -- Shared test fixtures for Stockify integration tests.

This module provides:
  - make_stores(): creates isolated in-memory DBs for auth + inventory
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - auth_store / inventory_store: fresh stores for store-level unit tests
  - api_client: TestClient plus an admin (full-permission role) bearer token
  - web_client: TestClient with follow_redirects=False for guard and page tests
  - reset_rate_limits: autouse; clears the shared slowapi counters per test

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

Settings are read once (lru_cache), so the environment must be set before any
auth/core import:
  DEBUG=true                 -- auto-generated SECRET_KEY
  PASSWORD_HASH_ROUNDS=4     -- fast bcrypt
  LOGIN_RATE_LIMIT=20/minute -- low enough to reach 429 in a test; counters
                                reset before every test (reset_rate_limits)
  ALLOWED_HOSTS=["*"]        -- TestClient sends Host: testserver
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: set before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "4")
os.environ.setdefault("LOGIN_RATE_LIMIT", "20/minute")
os.environ.setdefault("ALLOWED_HOSTS", '["*"]')

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from asgi import app
from auth.models import User
from auth.permissions import full_grid
from auth.store import AuthStore
from auth.tokens import hash_password, identity_for, issue_token
from inventory.store import InventoryStore

ADMIN_PASSWORD = "adminpass123"


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _memory_url(name: str) -> str:
    return f"sqlite:///file:{name}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


def make_stores(db_suffix: str) -> tuple[AuthStore, InventoryStore]:
    """Create isolated named shared-memory SQLite stores.

    The random part of the name keeps modules (and repeated runs in one
    process) from seeing each other's rows.
    """
    return AuthStore(db_url=_memory_url(f"test_auth_{db_suffix}")), InventoryStore(
        db_url=_memory_url(f"test_inventory_{db_suffix}")
    )


def create_user(
    store: AuthStore,
    email: str,
    password: str = "password123",
    role_id: int | None = None,
    first_name: str = "Test",
    last_name: str = "User",
) -> User:
    """Insert a user directly through the store and return it as stored."""
    user_id = store.create_user(
        User(
            email=email,
            first_name=first_name,
            last_name=last_name,
            password_hash=hash_password(password),
            role_id=role_id,
        )
    )
    return store.get_by_id(user_id)


def bearer(user: User) -> dict[str, str]:
    """Authorization header carrying a freshly issued token for user."""
    return {"Authorization": f"Bearer {issue_token(identity_for(user))}"}


def _patch_lifespan(auth_store: AuthStore, inventory: InventoryStore):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state. Password-reset deliveries
    are collected on app.state.sent_resets instead of being logged.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.auth_store = auth_store
        app.state.inventory = inventory
        app.state.sent_resets = []
        app.state.reset_notifier = lambda email, token: app.state.sent_resets.append((email, token))
        yield

    return test_lifespan


@pytest.fixture(autouse=True)
def reset_rate_limits() -> None:
    """Start every test with empty rate-limit counters; the limiter is process-wide."""
    limiter.reset()


# ---------------------------------------------------------------------------
# Store fixtures -- one fresh database per test
# ---------------------------------------------------------------------------


@pytest.fixture
def auth_store() -> Generator[AuthStore, None, None]:
    store = AuthStore(db_url=_memory_url("unit_auth"))
    yield store
    store.close()


@pytest.fixture
def inventory_store() -> Generator[InventoryStore, None, None]:
    store = InventoryStore(db_url=_memory_url("unit_inventory"))
    yield store
    store.close()


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, str, int], None, None]:
    """Yield (client, token, user_id) for API integration tests.

    The admin holds an "Admin" role with every permission. The token is a
    plain issued JWT; no session record is written for it.
    """
    auth_store, inventory = make_stores("api")
    role_id = auth_store.create_role("Admin", full_grid())
    admin = create_user(auth_store, "admin@stockify.test", ADMIN_PASSWORD, role_id=role_id)
    token = issue_token(identity_for(admin), expire_seconds=3600)

    app.router.lifespan_context = _patch_lifespan(auth_store, inventory)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, admin.id

    auth_store.close()
    inventory.close()


@pytest.fixture(scope="module")
def web_client() -> Generator[tuple[TestClient, str, int], None, None]:
    """Yield (client, token, user_id) for guard and page tests.

    follow_redirects=False is essential: tests assert on the redirect
    Location, which is invisible once the client follows it.
    """
    auth_store, inventory = make_stores("web")
    role_id = auth_store.create_role("Admin", full_grid())
    admin = create_user(auth_store, "web@stockify.test", ADMIN_PASSWORD, role_id=role_id)
    token = issue_token(identity_for(admin), expire_seconds=3600)

    app.router.lifespan_context = _patch_lifespan(auth_store, inventory)

    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield client, token, admin.id

    auth_store.close()
    inventory.close()
