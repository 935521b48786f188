"""Shared test fixtures: single test DB for all test modules."""
from __future__ import annotations

import uuid
from contextlib import asynccontextmanager

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
# Use a shared in-memory DB with check_same_thread=False and StaticPool
# This ensures all connections see the same in-memory database.
from sqlalchemy.pool import StaticPool

from marketplace.auth import create_access_token
from marketplace.db.engine import get_session
from marketplace.db.tables import Base
from marketplace.db.user_tables import UserRow

TEST_DB_URL = "sqlite+aiosqlite:///file:test?mode=memory&cache=shared&uri=true"

test_engine = create_async_engine(
    TEST_DB_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSession = async_sessionmaker(test_engine, expire_on_commit=False, class_=AsyncSession)


async def override_get_session():
    async with TestSession() as session:
        yield session


# Import app and override BEFORE any test module imports app
from marketplace.api.main import app  # noqa: E402

app.dependency_overrides[get_session] = override_get_session


@asynccontextmanager
async def get_test_session():
    """Context manager for seeding data in tests."""
    async with TestSession() as session:
        yield session


async def make_user(
    role: str = "customer",
    is_verified: bool = True,
    is_admin: bool = False,
    full_name: str | None = None,
) -> dict:
    """Insert a user and return ``{"id", "headers"}`` with a bearer token."""
    user_id = str(uuid.uuid4())
    async with TestSession() as session:
        session.add(UserRow(
            id=user_id,
            email=f"{user_id[:8]}@test.com",
            full_name=full_name or role.replace("_", " ").title(),
            role=role,
            is_admin=is_admin,
            is_verified=is_verified,
        ))
        await session.commit()
    token = create_access_token(user_id)
    return {"id": user_id, "headers": {"Authorization": f"Bearer {token}"}}


@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create tables before each test, drop after."""
    import marketplace.db.user_tables  # noqa: F401
    import marketplace.db.review_tables  # noqa: F401
    import marketplace.db.report_tables  # noqa: F401

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    # Reset rate limiter between tests
    from marketplace.middleware.rate_limit import reset_store
    reset_store()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def customer():
    return await make_user("customer", full_name="Casey Customer")


@pytest_asyncio.fixture
async def provider():
    return await make_user("service_provider", full_name="Pat Provider")


@pytest_asyncio.fixture
async def admin():
    return await make_user("admin", is_admin=True, full_name="Alex Admin")
