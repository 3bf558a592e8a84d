"""Service test fixtures — async DB, seeded account data and FastAPI test client.

Invariants:
    - Every test gets a fresh in-memory SQLite database with FK enforcement on
    - get_db dependency overridden to use the test DB session factory
    - db_manager patched so the readiness probe sees the test engine
    - Seeded accounts have the custom_roles feature unless a test says otherwise

Design Decisions:
    - SQLite in-memory: fast, no external dependency, sufficient for route tests
      (row locks are no-ops here; PostgreSQL-specific locking not exercised)
    - Principals identified by the X-Account-User-Id header, as set upstream
"""

import pytest
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from httpx import ASGITransport, AsyncClient

import custom_roles.models  # noqa: F401
from custom_roles.db.base import Base
from custom_roles.infrastructure.database import (
    DatabaseSessionManager, enable_sqlite_foreign_keys, get_db,
)
import custom_roles.infrastructure.database as db_module
from custom_roles.main import app
from custom_roles.models.account import Account
from custom_roles.models.account_user import AccountUser
from custom_roles.models.custom_role import CustomRole


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False,
    )
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


@pytest.fixture
async def client(test_engine, test_session_factory):
    """FastAPI test client with DB dependency overridden."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    original_manager = db_module.db_manager
    fake_manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    fake_manager.engine = test_engine
    fake_manager._session_factory = test_session_factory
    db_module.db_manager = fake_manager

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = original_manager


# ─── Seed data ───────────────────────────────────────────────────

async def _add(db, obj):
    db.add(obj)
    await db.commit()
    await db.refresh(obj)
    return obj


@pytest.fixture
async def account(test_db):
    return await _add(test_db, Account(name="Acme Support", features=["custom_roles"]))


@pytest.fixture
async def other_account(test_db):
    return await _add(test_db, Account(name="Globex", features=["custom_roles"]))


@pytest.fixture
async def admin(test_db, account):
    return await _add(test_db, AccountUser(
        account_id=account.id, display_name="Alice Admin", role="administrator",
    ))


@pytest.fixture
async def agent(test_db, account):
    return await _add(test_db, AccountUser(
        account_id=account.id, display_name="Bob Agent", role="agent",
    ))


@pytest.fixture
def make_role(test_db):
    """Insert a custom role directly, bypassing validation."""
    async def _make(account, name="Support Lead", permissions=None, description=None):
        return await _add(test_db, CustomRole(
            account_id=account.id,
            name=name,
            description=description or f"{name} role",
            permissions=permissions or ["conversation_unassigned_manage", "report_manage"],
        ))
    return _make


@pytest.fixture
def make_agent(test_db):
    """Insert an agent, optionally bound to a custom role."""
    async def _make(account, custom_role=None, display_name="Agent"):
        return await _add(test_db, AccountUser(
            account_id=account.id,
            display_name=display_name,
            role="agent",
            custom_role_id=custom_role.id if custom_role else None,
        ))
    return _make


@pytest.fixture
def as_user():
    """Request headers identifying the caller."""
    def _headers(account_user) -> dict[str, str]:
        return {"X-Account-User-Id": str(account_user.id)}
    return _headers
