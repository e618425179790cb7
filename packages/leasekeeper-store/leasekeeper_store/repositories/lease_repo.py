"""Repository for lock table operations"""
from typing import Callable, Dict, List, Optional
from datetime import datetime
from sqlalchemy import select, delete, update, func, and_, or_, case
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Row
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.leases import Lease, lease_expiry

# Dialects with INSERT ... ON CONFLICT DO UPDATE ... WHERE ... RETURNING
UPSERT_DIALECTS: Dict[str, Callable] = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class LeaseRepository:
    """
    Repository for lock table operations

    Every write is a single conditional statement so that the decision and
    the mutation happen atomically inside the database.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    def _insert(self):
        dialect = self.session.get_bind().dialect.name
        try:
            return UPSERT_DIALECTS[dialect]
        except KeyError:
            raise NotImplementedError(
                f"Unsupported database dialect for lease upserts: {dialect}"
            )

    async def renew(
        self,
        resource_name: str,
        holder_id: str,
        lease_duration_seconds: float,
        now: datetime
    ) -> Optional[Row]:
        """
        Extend a lease that ``holder_id`` still holds at ``now``

        Only ``expires_at`` changes. Matches nothing when the lease is absent,
        expired or owned by someone else.

        Returns:
            The updated row, or None when nothing was renewed
        """
        locks = Lease.__table__
        result = await self.session.execute(
            update(locks)
            .where(
                and_(
                    locks.c.resource_name == resource_name,
                    locks.c.holder_id == holder_id,
                    locks.c.expires_at > now,
                )
            )
            .values(expires_at=lease_expiry(now, lease_duration_seconds))
            .returning(
                locks.c.resource_name,
                locks.c.holder_id,
                locks.c.acquired_at,
                locks.c.expires_at,
            )
        )
        return result.one_or_none()

    async def try_acquire(
        self,
        resource_name: str,
        holder_id: str,
        lease_duration_seconds: float,
        now: datetime
    ) -> Optional[Row]:
        """
        Grant or renew a lease in one conditional upsert

        The row is written when it is absent, when the existing lease has
        expired, or when ``holder_id`` already owns it. A renewal keeps the
        original ``acquired_at``; a fresh grant or takeover resets it.

        Args:
            resource_name: Resource to lock
            holder_id: Caller identity
            lease_duration_seconds: Lease length measured from ``now``
            now: Evaluation time (naive UTC)

        Returns:
            The written row (resource_name, holder_id, acquired_at, expires_at),
            or None when another holder owns an active lease
        """
        locks = Lease.__table__
        insert = self._insert()

        stmt = insert(locks).values(
            resource_name=resource_name,
            holder_id=holder_id,
            acquired_at=now,
            expires_at=lease_expiry(now, lease_duration_seconds),
        )
        held_by_caller = and_(
            locks.c.holder_id == holder_id,
            locks.c.expires_at > now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[locks.c.resource_name],
            set_={
                "holder_id": stmt.excluded.holder_id,
                "acquired_at": case(
                    (held_by_caller, locks.c.acquired_at),
                    else_=stmt.excluded.acquired_at,
                ),
                "expires_at": stmt.excluded.expires_at,
            },
            where=or_(
                locks.c.expires_at <= now,
                locks.c.holder_id == holder_id,
            ),
        ).returning(
            locks.c.resource_name,
            locks.c.holder_id,
            locks.c.acquired_at,
            locks.c.expires_at,
        )

        result = await self.session.execute(stmt)
        return result.one_or_none()

    async def release(
        self,
        resource_name: str,
        holder_id: str,
        now: datetime
    ) -> bool:
        """
        Delete the lease if ``holder_id`` owns it and it is still active

        Returns:
            True if a row was deleted
        """
        result = await self.session.execute(
            delete(Lease)
            .where(
                and_(
                    Lease.resource_name == resource_name,
                    Lease.holder_id == holder_id,
                    Lease.expires_at > now,
                )
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def get_lease(self, resource_name: str) -> Optional[Lease]:
        """Get the row for a resource, active or not"""
        result = await self.session.execute(
            select(Lease).where(Lease.resource_name == resource_name)
        )
        return result.scalar_one_or_none()

    async def get_active_lease(
        self,
        resource_name: str,
        now: datetime
    ) -> Optional[Lease]:
        """Get the lease for a resource only if it is active at ``now``"""
        result = await self.session.execute(
            select(Lease).where(
                and_(
                    Lease.resource_name == resource_name,
                    Lease.expires_at > now,
                )
            )
        )
        return result.scalar_one_or_none()

    async def list_active(
        self,
        now: datetime,
        holder_id: Optional[str] = None
    ) -> List[Lease]:
        """
        List leases active at ``now``

        Args:
            now: Evaluation time (naive UTC)
            holder_id: Only return leases owned by this holder
        """
        conditions = [Lease.expires_at > now]
        if holder_id is not None:
            conditions.append(Lease.holder_id == holder_id)

        result = await self.session.execute(
            select(Lease)
            .where(and_(*conditions))
            .order_by(Lease.resource_name.asc())
        )
        return list(result.scalars().all())

    async def get_lease_statistics(self, now: datetime) -> dict:
        """Count rows, active leases, expired rows and distinct active holders"""
        total = await self.session.scalar(select(func.count()).select_from(Lease))
        active = await self.session.scalar(
            select(func.count()).select_from(Lease).where(Lease.expires_at > now)
        )
        holders = await self.session.scalar(
            select(func.count(func.distinct(Lease.holder_id))).where(Lease.expires_at > now)
        )

        total = total or 0
        active = active or 0
        return {
            "total": total,
            "active": active,
            "expired": total - active,
            "holders": holders or 0,
        }

    async def ping(self) -> None:
        """Cheap query touching the lock table"""
        await self.session.execute(select(Lease.resource_name).limit(1))

    async def purge_expired(self, expired_before: datetime) -> int:
        """
        Delete rows whose lease expired at or before ``expired_before``

        Table hygiene only: reads already treat expired rows as unlocked.

        Returns:
            Number of rows deleted
        """
        result = await self.session.execute(
            delete(Lease)
            .where(Lease.expires_at <= expired_before)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0
