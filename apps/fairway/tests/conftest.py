"""
Shared pytest configuration for settlement tests.

Engine-level tests run against a throwaway SQLite file (aiosqlite) so they
need no database server. Orchestration tests use the in-memory gateway from
fakes.py.
"""

import asyncio

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from fairway.database.db import Base
from fairway.database.repositories import SettlementGateway
from fairway.services.settings_service import SettlementSettings

from fakes import NOW, InMemoryStore


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def settings():
    return SettlementSettings(platform_fee_percentage=0.1, stuck_after_minutes=60)


@pytest.fixture
def store():
    """Empty in-memory store backing the fake gateway."""
    return InMemoryStore()


@pytest.fixture
def gateway(store):
    return store.gateway()


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """Create a SQLite test database with every table."""
    # Use NullPool so each operation gets its own connection, like production sessions
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'settlement_test.db'}",
        echo=False,
        poolclass=NullPool,
    )

    # Enforce foreign keys the way PostgreSQL does
    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        # Ensure models are imported so Base.metadata includes all tables
        from fairway.database import models  # noqa: F401

        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Small delay to let connections finish before disposing
    await asyncio.sleep(0.05)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Session for arranging and inspecting rows directly."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def sql_gateway(session_factory):
    return SettlementGateway.from_session_factory(session_factory)
