"""
tests/conftest.py -- Shared test fixtures for shopgate unit and integration tests.

This module provides:
  - _make_test_stores(): creates isolated in-memory DBs for accounts, tokens, products
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient plus the app's AuthService for API integration tests
  - web_client: TestClient with follow_redirects=False for web route tests
  - codec / accounts / tokens / auth_service / signup: fresh per-test objects for unit tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the TestClient fixtures because route handlers and the gate chain run in a
thread pool. Plain :memory: DBs are per-connection and would present a blank
schema to each worker thread. Unit-test fixtures stay on one thread and use
plain :memory:.

Environment variables must be set before any shopgate import: get_settings()
is cached on first call, and the slowapi limiter reads RATE_LIMIT_ENABLED at
import time.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager

# CRITICAL: configure the environment before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from fastapi.testclient import TestClient

from api.main import wire_state
from asgi import app
from auth.models import Account, SessionToken
from auth.service import AuthService
from auth.store import CredentialStore, TokenStore
from auth.tokens import TokenCodec
from catalog.store import ProductStore

TEST_SECRET = "test-signing-key-0123456789abcdef0123456789"
OTHER_SECRET = "another-signing-key-0123456789abcdef012345"
TEST_PASSWORD = "correct-horse-battery"

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[CredentialStore, TokenStore, ProductStore]:
    """Create isolated named shared-memory SQLite stores for test isolation.

    Args:
        db_suffix: Unique string in the DB name so test modules don't share
                   state (e.g. 'api', 'web').
    """
    url = f"sqlite:///file:test_{db_suffix}?mode=memory&cache=shared&uri=true"
    return CredentialStore(db_url=url), TokenStore(db_url=url), ProductStore(db_url=url)


def _patch_lifespan(accounts: CredentialStore, tokens: TokenStore, products: ProductStore, codec: TokenCodec):
    """Return an async context manager that replaces the real lifespan.

    wire_state() is the same function the production lifespan calls, so the
    gate chain under test is the production one. The purge task is a
    long-sleeping coroutine (a real asyncio.Task is needed for .cancel()).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        wire_state(app, accounts, tokens, products, codec=codec)
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


def _client_fixture(db_suffix: str, **client_kwargs) -> Generator[tuple[TestClient, AuthService], None, None]:
    accounts, tokens, products = _make_test_stores(db_suffix)
    codec = TokenCodec(TEST_SECRET)
    app.router.lifespan_context = _patch_lifespan(accounts, tokens, products, codec)
    with TestClient(app, raise_server_exceptions=True, **client_kwargs) as client:
        yield client, app.state.auth_service
    products.close()
    tokens.close()
    accounts.close()


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, AuthService], None, None]:
    """Yield (client, auth_service) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so tests
    hit real gates and route handlers but use isolated in-memory stores.
    auth_service is the instance the app itself uses, so tests can seed
    accounts and tokens directly.
    """
    yield from _client_fixture("api")


@pytest.fixture(scope="module")
def web_client() -> Generator[tuple[TestClient, AuthService], None, None]:
    """Yield (client, auth_service) for web route integration tests.

    follow_redirects=False is essential: we assert on redirect *locations*
    (e.g. 302 to /auth/login?redirect=...), which are invisible once the
    client follows the redirect and returns the final 200 response.
    """
    yield from _client_fixture("web", follow_redirects=False)


# ---------------------------------------------------------------------------
# Function-scoped unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def codec() -> TokenCodec:
    return TokenCodec(TEST_SECRET)


@pytest.fixture
def accounts() -> Generator[CredentialStore, None, None]:
    store = CredentialStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def tokens() -> Generator[TokenStore, None, None]:
    store = TokenStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def auth_service(codec: TokenCodec, accounts: CredentialStore, tokens: TokenStore) -> AuthService:
    return AuthService(codec, accounts, tokens)


_signup_counter = iter(range(1, 1_000_000))


def make_signup(service: AuthService) -> Callable[..., tuple[Account, SessionToken]]:
    """Return a factory that registers a fresh account and logs it in."""

    def _signup(name: str = "Test Seller", password: str = TEST_PASSWORD) -> tuple[Account, SessionToken]:
        email = f"seller{next(_signup_counter)}@example.com"
        account = service.register(name, email, password)
        return account, service.login(email, password)

    return _signup


@pytest.fixture
def signup(auth_service: AuthService) -> Callable[..., tuple[Account, SessionToken]]:
    return make_signup(auth_service)


@pytest.fixture(scope="module")
def api_signup(api_client) -> Callable[..., tuple[Account, SessionToken]]:
    _client, service = api_client
    return make_signup(service)


@pytest.fixture(scope="module")
def web_signup(web_client) -> Callable[..., tuple[Account, SessionToken]]:
    _client, service = web_client
    return make_signup(service)
