"""
tests/conftest.py -- Shared test fixtures for the Task Manager test suite.

This module provides:
  - hasher / token_service: cheap unit-test instances (bcrypt rounds=4)
  - user_store / task_store: fresh in-memory stores per test
  - credentials: a CredentialService wired to the above
  - api_client: TestClient over the real app with a patched lifespan
  - register_user(): helper that registers through the HTTP API

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the API fixture because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread. Unit-test stores stay on one thread, so :memory: is fine.

Environment variables must be set before any api/, auth/ or core/ import so
get_settings() sees them: DEBUG auto-generates SECRET_KEY, BCRYPT_ROUNDS=4
keeps hashing fast, and rate limiting is disabled so repeated logins across
test modules do not trip the 10/minute limit.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set env before any app import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("TOKEN_LIFETIME", "7d")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.credentials import CredentialService
from auth.passwords import PasswordHasher
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import get_settings
from tasks.store import TaskStore

TEST_SECRET = "test-secret-key-that-is-at-least-32-characters-long"

# The Host header TestClient sends must pass TrustedHostMiddleware.
BASE_URL = "http://localhost"


# ---------------------------------------------------------------------------
# Unit-test fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def token_service() -> TokenService:
    return TokenService(TEST_SECRET, lifetime_seconds=7 * 24 * 3600)


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def task_store() -> Generator[TaskStore, None, None]:
    store = TaskStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def credentials(user_store: UserStore, hasher: PasswordHasher, token_service: TokenService) -> CredentialService:
    return CredentialService(
        users=user_store,
        hasher=hasher,
        tokens=token_service,
        token_lifetime="7d",
        password_min_length=6,
    )


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: UserStore, task_store: TaskStore):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores and services into app.state so TestClient
    routes see isolated test DBs rather than the production database.
    """
    settings = get_settings()

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = settings
        app.state.user_store = user_store
        app.state.task_store = task_store
        app.state.password_hasher = PasswordHasher(rounds=4)
        app.state.token_service = TokenService(settings.secret_key, settings.token_lifetime_seconds)
        app.state.credentials = CredentialService(
            users=user_store,
            hasher=app.state.password_hasher,
            tokens=app.state.token_service,
            token_lifetime=settings.token_lifetime,
            password_min_length=settings.password_min_length,
        )
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[TestClient, None, None]:
    """Yield a TestClient over the real app with isolated shared-memory stores.

    One database per test module, named after the module so modules never
    see each other's users or tasks.
    """
    db_name = request.module.__name__.replace(".", "_")
    db_url = f"sqlite:///file:{db_name}?mode=memory&cache=shared&uri=true"
    user_store = UserStore(db_url)
    task_store = TaskStore(db_url)

    limiter.enabled = False
    app.router.lifespan_context = _patch_lifespan(user_store, task_store)

    with TestClient(app, base_url=BASE_URL, raise_server_exceptions=True) as client:
        yield client

    task_store.close()
    user_store.close()


def register_user(client: TestClient, name: str | None = None, password: str = "password123") -> dict:
    """Register a fresh user through POST /users.

    Returns {"id", "name", "email", "password", "token", "headers"}.
    """
    name = name or f"user-{uuid.uuid4().hex[:8]}"
    email = f"{name.lower()}@example.com"
    resp = client.post("/users", json={"name": name, "email": email, "password": password})
    assert resp.status_code == 201, resp.text
    body = resp.json()
    token = body["token"]
    return {
        "id": body["data"]["id"],
        "name": name,
        "email": email,
        "password": password,
        "token": token,
        "headers": {"Authorization": f"Bearer {token}"},
    }


@pytest.fixture
def register(api_client: TestClient):
    """Fixture form of register_user() bound to the module's api_client."""

    def _register(name: str | None = None, password: str = "password123") -> dict:
        return register_user(api_client, name=name, password=password)

    return _register
