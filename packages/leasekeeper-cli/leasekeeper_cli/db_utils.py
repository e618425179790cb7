"""Database utilities for CLI"""
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncEngine


def get_database_url() -> str:
    """Get database URL from environment"""
    from leasekeeper_store.database import get_database_url as store_database_url

    return store_database_url()


def get_async_database_url() -> str:
    """Get async database URL"""
    from leasekeeper_store.database import to_async_url

    return to_async_url(get_database_url())


@asynccontextmanager
async def _engine(engine: Optional[AsyncEngine]) -> AsyncIterator[AsyncEngine]:
    """Use ``engine`` as given, or open one for DATABASE_URL for this command"""
    if engine is not None:
        yield engine
        return

    from leasekeeper_store.database import create_engine_for_url

    owned = create_engine_for_url(get_database_url())
    try:
        yield owned
    finally:
        await owned.dispose()


@asynccontextmanager
async def _manager(engine: Optional[AsyncEngine]):
    from leasekeeper_gateway.config import GatewaySettings
    from leasekeeper_store.database import make_session_factory
    from leasekeeper_store.manager import LeaseManager

    lease_duration = GatewaySettings.from_env().lease_duration
    async with _engine(engine) as active:
        yield LeaseManager(make_session_factory(active), lease_duration_seconds=lease_duration)


async def init_database(engine: Optional[AsyncEngine] = None):
    """Initialize database (create tables)"""
    from leasekeeper_store.database import init_db

    async with _engine(engine) as active:
        await init_db(active)


async def drop_all_tables(engine: Optional[AsyncEngine] = None):
    """Drop all tables (destructive)"""
    from leasekeeper_store.database import drop_db

    async with _engine(engine) as active:
        await drop_db(active)


async def get_lock_stats(engine: Optional[AsyncEngine] = None) -> Dict[str, Any]:
    """Get lock table statistics"""
    async with _manager(engine) as manager:
        return await manager.statistics()


async def purge_expired_leases(
    grace_seconds: int = 0,
    engine: Optional[AsyncEngine] = None
) -> int:
    """Delete rows that expired more than ``grace_seconds`` ago"""
    async with _manager(engine) as manager:
        return await manager.purge_expired(grace_seconds=grace_seconds)


def run_alembic_command(command: str, *args):
    """Run alembic command"""
    from alembic.config import Config
    from alembic import command as alembic_command
    import leasekeeper_store.migrations as migrations

    # Build the config in code so installed packages need no alembic.ini
    alembic_cfg = Config()
    alembic_cfg.set_main_option("script_location", str(Path(migrations.__file__).parent))
    alembic_cfg.set_main_option("sqlalchemy.url", get_async_database_url().replace("%", "%%"))

    # Run command
    if command == "upgrade":
        alembic_command.upgrade(alembic_cfg, args[0] if args else "head")
    elif command == "downgrade":
        alembic_command.downgrade(alembic_cfg, args[0] if args else "-1")
    elif command == "current":
        alembic_command.current(alembic_cfg)
    elif command == "history":
        alembic_command.history(alembic_cfg)
    else:
        raise ValueError(f"Unknown alembic command: {command}")
