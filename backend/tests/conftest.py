"""
Pytest configuration and fixtures.

WHY: Fixtures provide reusable test setup/teardown logic, reducing
duplication and ensuring consistent test environments.
"""

import time
from typing import AsyncGenerator, Callable, Optional

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from saas_backend.core.config import Settings
from saas_backend.db.session import get_db, make_session_factory
from saas_backend.main import create_app
from saas_backend.models import Base
from saas_backend.services.billing_service import BillingConfig
from saas_backend.services.webhook_signature import build_signature_header
from tests.factories import TEST_WEBHOOK_SECRET, make_test_settings


# Test database URL
# WHY: In-memory SQLite keeps tests free of external services. StaticPool
# keeps every session on the one connection that holds the database.
TEST_ASYNC_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture
def test_settings() -> Settings:
    return make_test_settings()


@pytest.fixture
def billing_config(test_settings: Settings) -> BillingConfig:
    return BillingConfig.from_settings(test_settings)


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """
    Create a test database engine.

    WHY: Function scope ensures each test gets a fresh database state,
    preventing test pollution and ensuring test isolation.
    """
    engine = create_async_engine(
        TEST_ASYNC_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """
    Create a test database session.

    WHY: The same factory as the application, so commit and expiry
    behave the way they do in production.

    Yields:
        AsyncSession: Database session for the test
    """
    async_session = make_session_factory(db_engine)

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest.fixture
def app(test_settings: Settings) -> FastAPI:
    """
    Application built from the Stripe-enabled test settings.
    """
    return create_app(test_settings)


@pytest_asyncio.fixture
async def client(app: FastAPI, db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    Create a test HTTP client.

    WHY: AsyncClient with ASGITransport exercises the full app without
    running a real server.

    Yields:
        AsyncClient: HTTP client for making test requests
    """

    async def override_get_db():
        """Override database dependency with test session."""
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def sign() -> Callable[..., str]:
    """
    Sign a raw body the way Stripe does.

    Usage:
        header = sign(body)
        header = sign(body, timestamp=now - 600)
        header = sign(body, secret="whsec_other")
    """

    def _sign(
        body: bytes,
        timestamp: Optional[int] = None,
        secret: str = TEST_WEBHOOK_SECRET,
    ) -> str:
        if timestamp is None:
            timestamp = int(time.time())
        return build_signature_header(body, secret, timestamp)

    return _sign
