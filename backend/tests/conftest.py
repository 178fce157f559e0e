"""
Pytest fixtures for test database, client, and authentication.

Every test gets a fresh schema on its own engine. Defaults to in-memory
SQLite; point TEST_DATABASE_URL at a Postgres database to run the same
suite against the production dialect.
"""

import os

os.environ["REDIS_ENABLED"] = "false"
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ["SMTP_HOST"] = ""

from datetime import date
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from labbook.main import app
from labbook.db.base import Base
from labbook.db.session import get_db
from labbook.core.security import create_access_token, hash_password
from labbook.models.booking import Booking
from labbook.models.server import Server
from labbook.models.session import AuthSession
from labbook.models.user import User
from labbook.services.date_utils import days_booked, utc_today

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite://")

TEST_PASSWORD = "Password123"


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # One shared connection so the in-memory database survives across sessions.
        return {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
    return {}


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield session, then drop tables for isolation."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, **_engine_kwargs(TEST_DATABASE_URL))
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB dependency with the test session."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def today() -> date:
    return utc_today()


async def _create_user(db: AsyncSession, name: str, email: str, is_admin: bool = False) -> User:
    user = User(
        name=name,
        email=email,
        hashed_password=hash_password(TEST_PASSWORD),
        is_admin=is_admin,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def _bearer_headers(db: AsyncSession, user: User) -> dict:
    """Issue a token backed by a session row, the same way login does."""
    token, expires_at = create_access_token(data={"sub": user.id})
    db.add(AuthSession(user_id=user.id, token=token, expires_at=expires_at))
    await db.commit()
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """A regular (non-admin) user."""
    return await _create_user(db_session, "Test User", "test@example.com")


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "Other User", "other@example.com")


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "Admin User", "admin@example.com", is_admin=True)


@pytest_asyncio.fixture
async def auth_headers(db_session: AsyncSession, test_user: User) -> dict:
    """Authorization headers with Bearer token."""
    return await _bearer_headers(db_session, test_user)


@pytest_asyncio.fixture
async def other_headers(db_session: AsyncSession, other_user: User) -> dict:
    return await _bearer_headers(db_session, other_user)


@pytest_asyncio.fixture
async def admin_headers(db_session: AsyncSession, admin_user: User) -> dict:
    return await _bearer_headers(db_session, admin_user)


async def _create_server(db: AsyncSession, name: str, status: str = "available") -> Server:
    server = Server(
        name=name,
        cpu_spec="32 cores",
        memory_spec="256 GB",
        storage_spec="4 TB NVMe",
        gpu_spec="2x A100",
        location="Rack B2",
        status=status,
        bookings=[],
    )
    db.add(server)
    await db.commit()
    await db.refresh(server)
    return server


@pytest_asyncio.fixture
async def test_server(db_session: AsyncSession) -> Server:
    """An available server with no bookings."""
    return await _create_server(db_session, "gpu-node-01")


@pytest_asyncio.fixture
async def maintenance_server(db_session: AsyncSession) -> Server:
    return await _create_server(db_session, "gpu-node-02", status="maintenance")


@pytest.fixture
def make_booking(db_session: AsyncSession):
    """Factory inserting a booking directly, bypassing the service rules."""

    async def _make(
        server: Server,
        user: User,
        start: date,
        end: date,
        status: str = "active",
        purpose: str = "training run",
        renewal_notification_sent: bool = False,
    ) -> Booking:
        booking = Booking(
            server=server,
            user=user,
            start_date=start,
            end_date=end,
            purpose=purpose,
            status=status,
            days_booked=days_booked(start, end),
            renewal_notification_sent=renewal_notification_sent,
        )
        db_session.add(booking)
        await db_session.commit()
        await db_session.refresh(booking)
        return booking

    return _make