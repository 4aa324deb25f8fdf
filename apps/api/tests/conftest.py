"""
Test configuration and fixtures.

Provides:
- SQLite in-memory database, tables created and dropped per test
- Admin, super admin and client accounts with minted session cookies
- HTTPX AsyncClient with the CSRF header and a provider container whose
  outbound HTTP goes through ``httpx.MockTransport``
"""
import itertools
import os
import uuid
from dataclasses import dataclass, field
from typing import AsyncGenerator, Callable, Generator

from cryptography.fernet import Fernet

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENV"] = "dev"
os.environ["JWT_SECRET"] = "test-secret-for-session-tokens-0123456789"
os.environ["TOKEN_ENCRYPTION_KEY"] = Fernet.generate_key().decode()
os.environ["GOOGLE_CLIENT_ID"] = "google-client-id"
os.environ["GOOGLE_CLIENT_SECRET"] = "google-client-secret"
os.environ["MICROSOFT_CLIENT_ID"] = "microsoft-client-id"
os.environ["MICROSOFT_CLIENT_SECRET"] = "microsoft-client-secret"
os.environ["FRONTEND_URL"] = "http://frontend.test"
os.environ["RETRY_INITIAL_DELAY_SECONDS"] = "0"
os.environ["RETRY_MAX_DELAY_SECONDS"] = "0"

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from portal.core.deps import ADMIN_COOKIE_NAME, CLIENT_COOKIE_NAME, get_db, get_integrations
from portal.core.providers import Integrations, build_integrations
from portal.core.rate_limit import limiter
from portal.core.security import create_session_token, hash_password
from portal.db.base import Base
from portal.db.enums import AdminRole, Realm
from portal.db.models import Admin, Client, Dossier
from portal.db.session import SessionLocal, engine
from portal.main import app

TEST_PASSWORD = "Password123!"
CSRF_HEADERS = {"X-Requested-With": "XMLHttpRequest"}
NO_RETRY = {"max_retries": 0, "initial_delay": 0, "max_delay": 0}

_references = itertools.count(1)


# =============================================================================
# Database
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def disable_rate_limits():
    limiter.enabled = False
    yield
    limiter.enabled = True


# =============================================================================
# Provider HTTP
# =============================================================================

@dataclass
class FakeProviders:
    """
    Routes outbound provider requests to handlers registered by the test.

    Handlers are matched on method and URL substring, first match wins;
    unmatched requests get a 404 so a forgotten route shows up as a failure.
    """
    routes: list[tuple[str, str, Callable[[httpx.Request], httpx.Response]]] = field(default_factory=list)
    requests: list[httpx.Request] = field(default_factory=list)

    def add(self, method: str, url_part: str, handler) -> None:
        if not callable(handler):
            payload = handler
            handler = lambda request: httpx.Response(200, json=payload)  # noqa: E731
        self.routes.append((method.upper(), url_part, handler))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for method, url_part, handler in self.routes:
            if request.method == method and url_part in str(request.url):
                return handler(request)
        return httpx.Response(404, json={"error": "not found"})

    def calls(self, method: str, url_part: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and url_part in str(r.url)]


@pytest.fixture
def providers() -> FakeProviders:
    return FakeProviders()


@pytest.fixture
async def integrations(providers: FakeProviders) -> AsyncGenerator[Integrations, None]:
    http = httpx.AsyncClient(transport=httpx.MockTransport(providers))
    container = build_integrations(http=http, retry_options=NO_RETRY)
    yield container
    await container.aclose()


# =============================================================================
# Accounts
# =============================================================================

def make_admin(db: Session, role: AdminRole = AdminRole.ADMIN, **fields) -> Admin:
    suffix = uuid.uuid4().hex[:8]
    values = {
        "email": f"admin-{suffix}@cabinet-avocats.fr",
        "password_hash": hash_password(TEST_PASSWORD),
        "nom": "Durand",
        "prenom": "Claire",
        "username": f"admin-{suffix}",
        "role": role.value,
    }
    values.update(fields)
    admin = Admin(**values)
    db.add(admin)
    db.commit()
    db.refresh(admin)
    return admin


def make_client(db: Session, **fields) -> Client:
    suffix = uuid.uuid4().hex[:8]
    values = {
        "email": f"client-{suffix}@example.com",
        "password_hash": hash_password(TEST_PASSWORD),
        "nom": "Martin",
        "prenom": "Paul",
    }
    values.update(fields)
    client = Client(**values)
    db.add(client)
    db.commit()
    db.refresh(client)
    return client


def make_dossier(db: Session, client: Client, **fields) -> Dossier:
    values = {
        "client_id": client.id,
        "reference": f"2025-{next(_references):03d}-{client.nom[:3].upper()}",
        "intitule": "Litige commercial",
    }
    values.update(fields)
    dossier = Dossier(**values)
    db.add(dossier)
    db.commit()
    db.refresh(dossier)
    return dossier


@pytest.fixture
def test_admin(db: Session) -> Admin:
    return make_admin(db)


@pytest.fixture
def super_admin(db: Session) -> Admin:
    return make_admin(db, role=AdminRole.SUPER_ADMIN, nom="Bernard", prenom="Anne")


@pytest.fixture
def test_client(db: Session, test_admin: Admin) -> Client:
    return make_client(db, responsable_id=test_admin.id)


@pytest.fixture
def test_dossier(db: Session, test_client: Client, test_admin: Admin) -> Dossier:
    return make_dossier(db, test_client, assigned_admin_id=test_admin.id, created_by_id=test_admin.id)


def admin_token(admin: Admin, totp_verified: bool = True) -> str:
    return create_session_token(
        admin.id,
        realm=Realm.ADMIN.value,
        role=admin.role,
        token_version=admin.token_version,
        totp_verified=totp_verified,
    )


def client_token(client: Client, totp_verified: bool = True) -> str:
    return create_session_token(
        client.id,
        realm=Realm.CLIENT.value,
        role="client",
        token_version=client.token_version,
        totp_verified=totp_verified,
    )


# =============================================================================
# HTTP Clients
# =============================================================================

@pytest.fixture
def override_dependencies(db: Session, integrations: Integrations):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_integrations] = lambda: integrations
    yield
    app.dependency_overrides.clear()


def _async_client(cookies: dict | None = None) -> AsyncClient:
    return AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies=cookies,
        headers=CSRF_HEADERS,
    )


@pytest.fixture
async def client(override_dependencies) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated client (CSRF header set)."""
    async with _async_client() as c:
        yield c


@pytest.fixture
async def admin_client(override_dependencies, test_admin: Admin) -> AsyncGenerator[AsyncClient, None]:
    async with _async_client({ADMIN_COOKIE_NAME: admin_token(test_admin)}) as c:
        yield c


@pytest.fixture
async def super_admin_client(override_dependencies, super_admin: Admin) -> AsyncGenerator[AsyncClient, None]:
    async with _async_client({ADMIN_COOKIE_NAME: admin_token(super_admin)}) as c:
        yield c


@pytest.fixture
async def portal_client(override_dependencies, db: Session, test_client: Client) -> AsyncGenerator[AsyncClient, None]:
    """Client-realm session that completed its mandatory second factor."""
    test_client.totp_enabled = True
    db.commit()
    async with _async_client({CLIENT_COOKIE_NAME: client_token(test_client)}) as c:
        yield c
