"""Pytest fixtures for backend tests."""

import os

# Settings are read at import time; configure them before pulsewatch is imported
os.environ.setdefault("MASTER_KEY", "test-master-key-0123456789")
os.environ.setdefault("DATABASE_URL_OVERRIDE", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6399")

from collections.abc import AsyncGenerator
from datetime import UTC, datetime

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import pulsewatch.models  # noqa: F401  registers tables with Base
from pulsewatch.core.config import settings
from pulsewatch.db.base import Base
from pulsewatch.db.session import get_db
from pulsewatch.main import app
from pulsewatch.models.alert import AlertConfig
from pulsewatch.models.destination import NotificationDestination

TENANT = "app-1"


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """Create a fresh SQLite database file per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def test_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_alert(session_factory):
    """Insert an alert and return it (detached, with its id loaded)."""

    async def _make(**overrides) -> AlertConfig:
        fields = {
            "tenant_id": TENANT,
            "metric": "cpu",
            "name": "High CPU",
            "condition": ">",
            "threshold": "90",
            "enter_threshold": 1,
            "exit_threshold": 1,
            "repeat_interval_seconds": 3600,
            "treat_missing_as_breach": False,
            "expected_interval_seconds": None,
            "enabled": True,
            "consecutive_breaches": 0,
            "consecutive_recoveries": 0,
            "is_active": False,
        }
        fields.update(overrides)
        async with session_factory() as db:
            alert = AlertConfig(**fields)
            db.add(alert)
            await db.commit()
            await db.refresh(alert)
            return alert

    return _make


@pytest.fixture
def make_destination(session_factory):
    async def _make(**overrides) -> NotificationDestination:
        fields = {
            "tenant_id": TENANT,
            "name": "ops",
            "url": "https://hooks.example.com/ops",
            "format": "generic",
            "enabled": True,
        }
        fields.update(overrides)
        async with session_factory() as db:
            destination = NotificationDestination(**fields)
            db.add(destination)
            await db.commit()
            await db.refresh(destination)
            return destination

    return _make


@pytest.fixture
def load_alert(session_factory):
    """Re-read an alert from the database in a fresh session."""

    async def _load(alert_id) -> AlertConfig | None:
        async with session_factory() as db:
            return await db.get(AlertConfig, alert_id)

    return _load


@pytest.fixture
def at():
    """Build UTC datetimes from seconds past a fixed epoch."""
    base = datetime(2026, 1, 1, tzinfo=UTC)

    def _at(seconds: float) -> datetime:
        return datetime.fromtimestamp(base.timestamp() + seconds, UTC)

    return _at


def master_headers(tenant: str | None = TENANT) -> dict[str, str]:
    headers = {"X-API-Key": settings.MASTER_KEY}
    if tenant:
        headers["X-App-Id"] = tenant
    return headers


@pytest_asyncio.fixture(scope="function")
async def client(test_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create an unauthenticated test client."""

    async def override():
        yield test_session

    app.dependency_overrides[get_db] = override

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def master_client(test_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a client authenticated with the master key for tenant app-1."""

    async def override():
        yield test_session

    app.dependency_overrides[get_db] = override

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers=master_headers(),
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
