"""Pydantic schemas for validation and serialization"""
from pydantic import BaseModel, Field, field_validator
from typing import Literal, Optional
from datetime import datetime

from .manager import AcquireResult, LeaseInfo, LeaseStatus, ReleaseResult
from .models.leases import ReleaseStatus


class LockRequest(BaseModel):
    """Body of acquire and release requests"""
    resource_name: str = Field(..., min_length=1, max_length=255, description="Resource to lock")
    process_id: str = Field(..., min_length=1, max_length=255, description="Caller (holder) identity")

    @field_validator("resource_name", "process_id")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class AcquireResponse(BaseModel):
    """Schema for acquire response"""
    status: Literal["acquired", "denied"]
    resource_name: str
    process_id: str
    expires_at: Optional[datetime] = None

    @classmethod
    def from_result(cls, result: AcquireResult) -> "AcquireResponse":
        return cls(
            status=result.status.value,
            resource_name=result.resource_name,
            process_id=result.holder_id,
            expires_at=result.expires_at,
        )


class ReleaseResponse(BaseModel):
    """Schema for release response"""
    status: Literal["released", "not_locked_by_process"]
    resource_name: str

    @classmethod
    def from_result(cls, result: ReleaseResult) -> "ReleaseResponse":
        status = "released" if result.status is ReleaseStatus.RELEASED else "not_locked_by_process"
        return cls(status=status, resource_name=result.resource_name)


class StatusResponse(BaseModel):
    """Schema for lock status response"""
    resource_name: str
    is_locked: bool
    process_id: Optional[str] = None
    acquired_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    @classmethod
    def from_status(cls, status: LeaseStatus) -> "StatusResponse":
        return cls(
            resource_name=status.resource_name,
            is_locked=status.is_locked,
            process_id=status.holder_id,
            acquired_at=status.acquired_at,
            expires_at=status.expires_at,
        )


class LeaseRecord(BaseModel):
    """Schema for an active lease in list responses"""
    resource_name: str
    process_id: str
    acquired_at: datetime
    expires_at: datetime

    @classmethod
    def from_info(cls, lease: LeaseInfo) -> "LeaseRecord":
        return cls(
            resource_name=lease.resource_name,
            process_id=lease.holder_id,
            acquired_at=lease.acquired_at,
            expires_at=lease.expires_at,
        )
