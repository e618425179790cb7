"""Pytest configuration and fixtures shared by all packages"""
import asyncio
import os
from datetime import datetime

import pytest
from dotenv import load_dotenv
from sqlalchemy.pool import NullPool

# Load environment variables
load_dotenv()

# Tests never need a server database
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./leasekeeper_test.db")
os.environ.setdefault("TTL_SECONDS", "30")

from leasekeeper_store.database import create_engine_for_url, make_session_factory, init_db  # noqa: E402
from leasekeeper_store.manager import LeaseManager  # noqa: E402

T0 = datetime(2026, 1, 1, 12, 0, 0)


@pytest.fixture
def t0():
    """Fixed naive UTC evaluation time"""
    return T0


@pytest.fixture
def sqlite_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'locks.db'}"


@pytest.fixture
async def engine(sqlite_url):
    """File backed SQLite engine with the lock table created"""
    engine = create_engine_for_url(sqlite_url)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def manager(session_factory):
    return LeaseManager(session_factory, lease_duration_seconds=30)


@pytest.fixture
def sync_manager(sqlite_url):
    """
    Lease manager for code that runs its own event loop (TestClient, CliRunner)

    NullPool keeps connections from leaking between event loops.
    """
    engine = create_engine_for_url(sqlite_url, poolclass=NullPool)
    asyncio.run(init_db(engine))
    yield LeaseManager(make_session_factory(engine), lease_duration_seconds=30)
    asyncio.run(engine.dispose())
