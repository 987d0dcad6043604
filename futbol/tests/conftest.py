"""
Shared pytest configuration for futbol tests.

Tests run against an in-memory SQLite database (aiosqlite), created fresh for
every test. Environment is pinned before any futbol module is imported so
module-level configuration (email, Redis, rate limiting) picks it up.
"""

import os

os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["REDIS_ENABLED"] = "false"
os.environ["ENABLE_EMAIL"] = "false"
os.environ["EMAIL_SEND_DELAY_SECONDS"] = "0"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["AUTH_JWT_KEY"] = "test-jwt-key"
os.environ["AUTH_JWT_ALGORITHMS"] = "HS256"
os.environ["IDENTITY_WEBHOOK_SECRET"] = "whsec_MfKQ9r8GKYqrTwjUPD8ILPZIo2LaLaSw"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from futbol.database.db import Base  # noqa: E402
from futbol.services import email_queue  # noqa: E402


@pytest_asyncio.fixture
async def test_engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        from futbol.database import models  # noqa: F401

        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine):
    """Database session bound to the per-test engine."""
    session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_maker() as session:
        yield session


@pytest.fixture(autouse=True)
def fresh_email_queue(monkeypatch):
    """Every test gets its own (unstarted) email queue."""
    queue = email_queue.EmailQueue()
    monkeypatch.setattr(email_queue, "_email_queue", queue)
    return queue

