"""Shared pytest fixtures for unit and integration tests."""

import os
import uuid
from unittest.mock import AsyncMock

import pytest

# Settings are read at import time; pin them before the app is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_FORMAT"] = "text"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["PORTAL_JWT_SECRET"] = "test-portal-secret"
os.environ["PUSH_API_URL"] = ""
os.environ["DOCUMENT_STORE_URL"] = ""
os.environ["PDF_RENDER_URL"] = ""
os.environ["UPLOAD_BACKEND"] = "project"

from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.main import app
from app.config import settings
from app.database import Base, get_db
from app.services.notification_service import NotificationService
from factories import make_token


@pytest.fixture
def auth_headers() -> dict:
    return {"Authorization": f"Bearer {make_token()}"}


@pytest.fixture
async def engine():
    """Fresh in-memory database per test, with working SAVEPOINTs"""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        # let SQLAlchemy emit BEGIN itself so SAVEPOINT works
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    """Session for service-level tests"""
    async with session_factory() as session:
        yield session


@pytest.fixture
def dispatch_mock(monkeypatch):
    """Stand-in for the after-commit push dispatch"""
    mock = AsyncMock()
    monkeypatch.setattr(NotificationService, "dispatch_in_background", mock)
    return mock


@pytest.fixture
async def client(session_factory, dispatch_mock):
    """ASGI client bound to the per-test database"""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url=f"http://test{settings.API_V1_PREFIX}") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def unique_suffix() -> str:
    return str(uuid.uuid4())[:8]
