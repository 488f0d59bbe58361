"""
Database session management.

WHY: Each webhook delivery runs in its own AsyncSession so one event's
writes can be committed or rolled back as a unit.
"""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from saas_backend.core.config import settings


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    """
    Build the session factory used by the application and the tests.

    WHY: expire_on_commit=False keeps committed objects readable without
    another round trip; autoflush=False leaves flushing to the DAOs.
    """
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# WHY: pool_pre_ping recycles connections dropped by the server between
# deliveries.
engine = create_async_engine(
    settings.async_database_url,
    echo=settings.DEBUG,
    pool_pre_ping=True,
    pool_size=10,
    max_overflow=20,
)

AsyncSessionLocal = make_session_factory(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency to get a database session.

    Services commit their own transactions; anything left open when the
    request fails is rolled back here.

    Yields:
        AsyncSession: Database session for the request
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
