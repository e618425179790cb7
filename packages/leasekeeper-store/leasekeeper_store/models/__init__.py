"""Database models"""
from .leases import (
    Lease,
    AcquireStatus,
    ReleaseStatus,
    utcnow,
    as_naive_utc,
    lease_expiry,
)

__all__ = [
    "Lease",
    "AcquireStatus",
    "ReleaseStatus",
    "utcnow",
    "as_naive_utc",
    "lease_expiry",
]
