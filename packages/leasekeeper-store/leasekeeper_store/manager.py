"""Lease manager: the lease state machine on top of the lock table"""
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import AsyncIterator, Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from .exceptions import LeaseStoreError
from .models.leases import AcquireStatus, Lease, ReleaseStatus, as_naive_utc, utcnow
from .repositories.lease_repo import LeaseRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AcquireResult:
    """Result of an acquire call"""
    status: AcquireStatus
    resource_name: str
    holder_id: str
    acquired_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    renewed: bool = False

    @property
    def acquired(self) -> bool:
        return self.status is AcquireStatus.ACQUIRED


@dataclass(frozen=True)
class ReleaseResult:
    """Result of a release call"""
    status: ReleaseStatus
    resource_name: str

    @property
    def released(self) -> bool:
        return self.status is ReleaseStatus.RELEASED


@dataclass(frozen=True)
class LeaseInfo:
    """Detached snapshot of an active lease"""
    resource_name: str
    holder_id: str
    acquired_at: datetime
    expires_at: datetime

    @classmethod
    def from_model(cls, lease: Lease) -> "LeaseInfo":
        return cls(
            resource_name=lease.resource_name,
            holder_id=lease.holder_id,
            acquired_at=lease.acquired_at,
            expires_at=lease.expires_at,
        )


@dataclass(frozen=True)
class LeaseStatus:
    """Lock status of a single resource"""
    resource_name: str
    is_locked: bool
    holder_id: Optional[str] = None
    acquired_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


def _require(value: str, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{name} must be a non-empty string")
    return value


class LeaseManager:
    """
    Grants, renews and releases leases on named resources

    The manager keeps no lease state in memory. Each operation is one
    transaction against the lock table, so any number of managers may share
    a database. Expired rows are never swept here; they are simply treated
    as unlocked until someone reclaims or releases them.
    """

    def __init__(
        self,
        session_factory: Callable,
        lease_duration_seconds: float,
        clock: Callable[[], datetime] = utcnow
    ):
        """
        Initialize lease manager

        Args:
            session_factory: Factory returning AsyncSession context managers
            lease_duration_seconds: Default lease length for acquire
            clock: Source of the current naive UTC time
        """
        if lease_duration_seconds <= 0:
            raise ValueError("lease_duration_seconds must be positive")
        self.session_factory = session_factory
        self.lease_duration_seconds = lease_duration_seconds
        self.clock = clock

    def _now(self, now: Optional[datetime]) -> datetime:
        return as_naive_utc(now) if now is not None else self.clock()

    @asynccontextmanager
    async def _repository(self, operation: str) -> AsyncIterator[LeaseRepository]:
        """Run one operation in its own transaction, translating store faults"""
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    yield LeaseRepository(session)
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Lock table {operation} failed: {e}", exc_info=True)
            raise LeaseStoreError(operation, e) from e

    async def acquire(
        self,
        resource_name: str,
        holder_id: str,
        lease_duration_seconds: Optional[float] = None,
        now: Optional[datetime] = None
    ) -> AcquireResult:
        """
        Acquire or renew a lease

        Args:
            resource_name: Resource to lock
            holder_id: Caller identity
            lease_duration_seconds: Override of the configured lease length
            now: Evaluation time; defaults to the clock

        Returns:
            ACQUIRED if the caller now owns the lease, DENIED if another
            holder owns an active lease
        """
        _require(resource_name, "resource_name")
        _require(holder_id, "holder_id")
        duration = self.lease_duration_seconds if lease_duration_seconds is None else lease_duration_seconds
        if duration <= 0:
            raise ValueError("lease_duration_seconds must be positive")
        now = self._now(now)

        # Renewal first, so a renewal is known from the write itself
        async with self._repository("acquire") as repo:
            row = await repo.renew(resource_name, holder_id, duration, now)
            renewed = row is not None
            if not renewed:
                row = await repo.try_acquire(resource_name, holder_id, duration, now)

        if row is None:
            logger.debug(f"Lease on {resource_name!r} denied to {holder_id!r}")
            return AcquireResult(
                status=AcquireStatus.DENIED,
                resource_name=resource_name,
                holder_id=holder_id,
            )

        if row.holder_id != holder_id:
            logger.error(f"Upsert on {resource_name!r} returned holder {row.holder_id!r}, expected {holder_id!r}")
            raise LeaseStoreError(
                "acquire",
                RuntimeError(f"upsert returned holder {row.holder_id!r}"),
            )

        if renewed:
            logger.info(f"Lease on {resource_name!r} renewed by {holder_id!r} until {row.expires_at}")
        else:
            logger.info(f"Lease on {resource_name!r} granted to {holder_id!r} until {row.expires_at}")

        return AcquireResult(
            status=AcquireStatus.ACQUIRED,
            resource_name=resource_name,
            holder_id=holder_id,
            acquired_at=row.acquired_at,
            expires_at=row.expires_at,
            renewed=renewed,
        )

    async def release(
        self,
        resource_name: str,
        holder_id: str,
        now: Optional[datetime] = None
    ) -> ReleaseResult:
        """
        Release a lease held by ``holder_id``

        Returns NOT_HOLDER without touching the table when the resource is
        unlocked, expired or owned by someone else.
        """
        _require(resource_name, "resource_name")
        _require(holder_id, "holder_id")
        now = self._now(now)

        async with self._repository("release") as repo:
            deleted = await repo.release(resource_name, holder_id, now)

        if not deleted:
            logger.debug(f"Release of {resource_name!r} by {holder_id!r} rejected: not holder")
            return ReleaseResult(status=ReleaseStatus.NOT_HOLDER, resource_name=resource_name)

        logger.info(f"Lease on {resource_name!r} released by {holder_id!r}")
        return ReleaseResult(status=ReleaseStatus.RELEASED, resource_name=resource_name)

    async def status(
        self,
        resource_name: str,
        now: Optional[datetime] = None
    ) -> LeaseStatus:
        """Report whether a resource is locked; never mutates the table"""
        _require(resource_name, "resource_name")
        now = self._now(now)

        async with self._repository("status") as repo:
            lease = await repo.get_active_lease(resource_name, now)
            if lease is None:
                return LeaseStatus(resource_name=resource_name, is_locked=False)
            return LeaseStatus(
                resource_name=resource_name,
                is_locked=True,
                holder_id=lease.holder_id,
                acquired_at=lease.acquired_at,
                expires_at=lease.expires_at,
            )

    async def list_active(self, now: Optional[datetime] = None) -> List[LeaseInfo]:
        """List all active leases"""
        now = self._now(now)
        async with self._repository("list_active") as repo:
            leases = await repo.list_active(now)
            return [LeaseInfo.from_model(lease) for lease in leases]

    async def list_by_holder(
        self,
        holder_id: str,
        now: Optional[datetime] = None
    ) -> List[LeaseInfo]:
        """List active leases owned by ``holder_id``"""
        _require(holder_id, "holder_id")
        now = self._now(now)
        async with self._repository("list_by_holder") as repo:
            leases = await repo.list_active(now, holder_id=holder_id)
            return [LeaseInfo.from_model(lease) for lease in leases]

    async def statistics(self, now: Optional[datetime] = None) -> dict:
        """Row counts for operators"""
        now = self._now(now)
        async with self._repository("statistics") as repo:
            return await repo.get_lease_statistics(now)

    async def purge_expired(
        self,
        grace_seconds: float = 0,
        now: Optional[datetime] = None
    ) -> int:
        """
        Delete rows that expired more than ``grace_seconds`` ago

        Optional table hygiene; lease semantics do not depend on it.
        """
        if grace_seconds < 0:
            raise ValueError("grace_seconds must not be negative")
        now = self._now(now)
        cutoff = now - timedelta(seconds=grace_seconds)
        async with self._repository("purge_expired") as repo:
            deleted = await repo.purge_expired(cutoff)
        logger.info(f"Purged {deleted} expired lease rows (expired before {cutoff})")
        return deleted

    async def ping(self) -> None:
        """Round-trip to the lock table; raises LeaseStoreError when unreachable"""
        async with self._repository("ping") as repo:
            await repo.ping()
