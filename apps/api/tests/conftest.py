"""
Test configuration and fixtures.

Provides:
- Fresh in-memory SQLite database per test (shared single connection)
- Tenant token minting for authenticated tests
- HTTPX AsyncClient per tenant with bearer headers
"""
import os
from dataclasses import dataclass
from typing import AsyncGenerator, Callable, Generator

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["TESTING"] = "1"
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ["JWT_SECRET"] = "test-secret-for-tenant-tokens"

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import text
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.core.deps import get_db
from app.core.security import PLATFORM_ADMIN_ROLE, create_tenant_token
from app.db.models import AppUser
from app.db.schema import ensure_tables
from app.db.session import build_engine


# =============================================================================
# Tenants
# =============================================================================

CLIENT_A, APP_A = 1, "crm-app"
CLIENT_B, APP_B = 2, "other-app"

ALICE_ID = 1
BOB_ID = 42
CAROL_ID = 7


@dataclass
class TenantAuth:
    """Tenant identity plus the token a client presents."""
    client_id: int
    app_id: str
    user_id: int | None
    token: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


def make_tenant(
    client_id: int,
    app_id: str,
    user_id: int | None = None,
    role: str = "member",
) -> TenantAuth:
    token = create_tenant_token(client_id=client_id, app_id=app_id, user_id=user_id, role=role)
    return TenantAuth(client_id=client_id, app_id=app_id, user_id=user_id, token=token)


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def engine():
    """One in-memory database per test, every table created up front."""
    test_engine = build_engine("sqlite://", poolclass=StaticPool)
    ensure_tables(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine) -> sessionmaker:
    # Seeded objects stay readable after commit without touching the connection
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@pytest.fixture(scope="function")
def db(session_factory) -> Generator[Session, None, None]:
    """
    Session for seeding and assertions.

    The database is a single shared connection: commit (or close) before
    calling the API so the request gets its own transaction.
    """
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(scope="function")
def query(session_factory) -> Callable[..., list[dict]]:
    """Run raw SQL in a short-lived session and return rows as dicts."""
    def _query(sql: str, **params) -> list[dict]:
        with session_factory() as session:
            return [dict(row) for row in session.execute(text(sql), params).mappings()]

    return _query


@pytest.fixture(scope="function")
def users(db: Session) -> dict[str, AppUser]:
    """End users of both tenants; attendees resolve against these."""
    people = {
        "alice": AppUser(id=ALICE_ID, name="Alice", email="a@x.com", client_id=CLIENT_A, app_id=APP_A),
        "bob": AppUser(id=BOB_ID, name="Bob", email="bob@x.com", client_id=CLIENT_A, app_id=APP_A),
        "carol": AppUser(id=CAROL_ID, name="Carol", email="carol@y.com", client_id=CLIENT_B, app_id=APP_B),
    }
    db.add_all(people.values())
    db.commit()
    return people


# =============================================================================
# Auth Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def tenant_factory() -> Callable[..., TenantAuth]:
    """Mint tokens for ad-hoc tenants, users and roles."""
    return make_tenant


@pytest.fixture(scope="function")
def tenant_a() -> TenantAuth:
    return make_tenant(CLIENT_A, APP_A, user_id=ALICE_ID)


@pytest.fixture(scope="function")
def tenant_b() -> TenantAuth:
    return make_tenant(CLIENT_B, APP_B, user_id=CAROL_ID)


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def override_db(session_factory) -> Generator[None, None, None]:
    """Route get_db to the per-test database, one session per request."""
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def client_factory(override_db) -> Callable[..., AsyncClient]:
    """Build AsyncClients for arbitrary headers (closed by the caller)."""
    def _make(headers: dict[str, str] | None = None) -> AsyncClient:
        return AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
            headers=headers or {},
        )

    return _make


@pytest.fixture(scope="function")
async def client(override_db) -> AsyncGenerator[AsyncClient, None]:
    """
    Create unauthenticated AsyncClient for testing public endpoints.
    """
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c


@pytest.fixture(scope="function")
async def authed_client(
    override_db,
    tenant_a: TenantAuth,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Create AsyncClient authenticated as Alice in tenant A.
    """
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers=tenant_a.headers,
    ) as c:
        yield c


@pytest.fixture(scope="function")
async def other_client(
    override_db,
    tenant_b: TenantAuth,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Create AsyncClient authenticated as Carol in tenant B.
    """
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers=tenant_b.headers,
    ) as c:
        yield c


@pytest.fixture(scope="function")
async def admin_client(override_db) -> AsyncGenerator[AsyncClient, None]:
    """
    Create AsyncClient with a platform admin token (isolation off) bound to tenant A.
    """
    admin = make_tenant(CLIENT_A, APP_A, role=PLATFORM_ADMIN_ROLE)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers=admin.headers,
    ) as c:
        yield c
