"""Leasekeeper Store - lock table, lease manager and migrations"""
__version__ = "0.1.0"

from .database import (
    Base,
    init_db,
    drop_db,
    create_engine_for_url,
    make_session_factory,
    to_async_url,
    get_database_url,
)

from .models import (
    Lease,
    AcquireStatus,
    ReleaseStatus,
    utcnow,
)

from .repositories import LeaseRepository

from .manager import (
    LeaseManager,
    AcquireResult,
    ReleaseResult,
    LeaseStatus,
    LeaseInfo,
)

from .exceptions import LeasekeeperError, LeaseStoreError

from . import schemas

__all__ = [
    # Database
    "Base",
    "init_db",
    "drop_db",
    "create_engine_for_url",
    "make_session_factory",
    "to_async_url",
    "get_database_url",
    # Models
    "Lease",
    "AcquireStatus",
    "ReleaseStatus",
    "utcnow",
    # Repositories
    "LeaseRepository",
    # Manager
    "LeaseManager",
    "AcquireResult",
    "ReleaseResult",
    "LeaseStatus",
    "LeaseInfo",
    # Errors
    "LeasekeeperError",
    "LeaseStoreError",
    # Schemas
    "schemas",
]
