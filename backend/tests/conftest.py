"""Pytest configuration and fixtures for PalmTrack tests.

Each test gets its own in-memory SQLite database (aiosqlite +
StaticPool) with the full schema created from the models.  Redis-backed
token revocation is replaced by an in-memory store, and agent photos go
to a per-test temporary directory.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import time
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from palmtrack.auth.jwt import create_access_token
from palmtrack.auth.password import hash_password
from palmtrack.auth.permissions import resolve_permissions
from palmtrack.auth.revocation import TokenRevocation
from palmtrack.config import settings
from palmtrack.database import Base, get_db
from palmtrack.main import app
from palmtrack.models.agent import Agent
from palmtrack.models.customer import Customer
from palmtrack.models.user import User, UserRole

ADMIN_PASSWORD = "admin-password-1"
AGENT_PASSWORD = "agent-password-1"


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for arranging data and checking results outside requests."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Test client; each request gets its own committed-or-rolled-back session."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ── Redis / storage replacements ─────────────────────────────────

class InMemoryRevocation:
    def __init__(self):
        self.tokens: set[str] = set()
        self.users: dict[str, float] = {}


@pytest.fixture(autouse=True)
def revocation(monkeypatch) -> InMemoryRevocation:
    """Token revocation without Redis, same semantics as TokenRevocation."""
    store = InMemoryRevocation()

    async def revoke_token(token: str, expires_at: float) -> bool:
        store.tokens.add(token)
        return True

    async def is_revoked(token: str) -> bool:
        return token in store.tokens

    async def revoke_all_user_tokens(user_id: str) -> bool:
        store.users[user_id] = time.time()
        return True

    async def is_user_revoked(user_id: str, issued_at: float) -> bool:
        revoked_at = store.users.get(user_id)
        return revoked_at is not None and issued_at < revoked_at

    monkeypatch.setattr(TokenRevocation, "revoke_token", staticmethod(revoke_token))
    monkeypatch.setattr(TokenRevocation, "is_revoked", staticmethod(is_revoked))
    monkeypatch.setattr(
        TokenRevocation, "revoke_all_user_tokens", staticmethod(revoke_all_user_tokens)
    )
    monkeypatch.setattr(TokenRevocation, "is_user_revoked", staticmethod(is_user_revoked))
    return store


@pytest.fixture(autouse=True)
def storage_dir(tmp_path, monkeypatch):
    path = tmp_path / "storage"
    monkeypatch.setattr(settings, "storage_dir", str(path))
    return path


# ── Test Data Fixtures ───────────────────────────────────────────

@pytest_asyncio.fixture
async def test_agent(db_session: AsyncSession) -> Agent:
    agent = Agent(full_name="Kwame Mensah", phone="0244000001", location="Kade")
    db_session.add(agent)
    await db_session.commit()
    return agent


@pytest_asyncio.fixture
async def other_agent(db_session: AsyncSession) -> Agent:
    agent = Agent(full_name="Ama Owusu", phone="0244000002", location="Akim Oda")
    db_session.add(agent)
    await db_session.commit()
    return agent


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    user = User(
        email="admin@edical.com",
        full_name="Office Admin",
        hashed_password=hash_password(ADMIN_PASSWORD),
        role=UserRole.ADMIN,
        is_active=True,
    )
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def agent_user(db_session: AsyncSession, test_agent: Agent) -> User:
    user = User(
        email="kwame@edical.com",
        full_name="Kwame Mensah",
        hashed_password=hash_password(AGENT_PASSWORD),
        role=UserRole.AGENT,
        agent_id=test_agent.id,
        is_active=True,
    )
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def test_customer(db_session: AsyncSession) -> Customer:
    customer = Customer(full_name="Yaw Boateng", phone="0201234567", delivery_address="Kade")
    db_session.add(customer)
    await db_session.commit()
    return customer


def _token_for(user: User) -> str:
    return create_access_token(
        user_id=user.id,
        role=user.role.value,
        permissions=resolve_permissions(user.role.value),
        agent_id=user.agent_id,
    )


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return {"Authorization": f"Bearer {_token_for(admin_user)}"}


@pytest.fixture
def agent_headers(agent_user: User) -> dict:
    return {"Authorization": f"Bearer {_token_for(agent_user)}"}


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "api: API tests over the ASGI app")
