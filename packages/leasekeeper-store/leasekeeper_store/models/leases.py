"""Lock table model"""
from sqlalchemy import Column, String, DateTime
from datetime import datetime, timedelta, timezone
from enum import Enum

from ..database import Base


class AcquireStatus(str, Enum):
    """Outcome of an acquire request"""
    ACQUIRED = "acquired"
    DENIED = "denied"


class ReleaseStatus(str, Enum):
    """Outcome of a release request"""
    RELEASED = "released"
    NOT_HOLDER = "not_holder"


def utcnow() -> datetime:
    """Current time as naive UTC, the form stored in the lock table"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(ts: datetime) -> datetime:
    """Normalize an aware or naive timestamp to naive UTC"""
    if ts.tzinfo is not None:
        return ts.astimezone(timezone.utc).replace(tzinfo=None)
    return ts


def lease_expiry(now: datetime, lease_duration_seconds: float) -> datetime:
    """Expiry timestamp for a lease granted at ``now``"""
    return now + timedelta(seconds=lease_duration_seconds)


class Lease(Base):
    """One row per protected resource; the row is the lock"""
    __tablename__ = "locks"

    resource_name = Column(String(255), primary_key=True)
    holder_id = Column(String(255), nullable=False, index=True)

    # Naive UTC timestamps
    acquired_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<Lease {self.resource_name} holder={self.holder_id} expires_at={self.expires_at}>"
