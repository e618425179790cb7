"""FastAPI Application for Leasekeeper Gateway"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List

from fastapi import Depends, FastAPI, HTTPException, Path, Request, status
from fastapi.responses import JSONResponse

from leasekeeper_store.database import create_engine_for_url, make_session_factory
from leasekeeper_store.exceptions import LeaseStoreError
from leasekeeper_store.manager import LeaseManager
from leasekeeper_store.schemas import (
    AcquireResponse,
    LeaseRecord,
    LockRequest,
    ReleaseResponse,
    StatusResponse,
)

from . import __version__
from .config import get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the lease manager once per process"""
    settings = get_settings()
    engine = create_engine_for_url(settings.database_url)
    app.state.lease_manager = LeaseManager(
        make_session_factory(engine),
        lease_duration_seconds=settings.lease_duration,
    )
    logger.info(
        f"Gateway started (lease duration {settings.lease_duration}s, "
        f"database {settings.as_dict['database_url']})"
    )
    try:
        yield
    finally:
        await engine.dispose()
        logger.info("Gateway stopped")


app = FastAPI(
    title="Leasekeeper Gateway",
    version=__version__,
    description="REST API for acquiring, renewing and releasing named leases",
    lifespan=lifespan,
)


def get_lease_manager(request: Request) -> LeaseManager:
    """Dependency returning the process-wide lease manager"""
    return request.app.state.lease_manager


def _require_identifier(value: str, field: str) -> str:
    if not value.strip():
        raise HTTPException(
            status_code=422,
            detail=f"{field} must not be blank",
        )
    return value


@app.exception_handler(LeaseStoreError)
async def lease_store_error_handler(request: Request, exc: LeaseStoreError):
    logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Server error"},
    )


# Endpoints
@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": "Leasekeeper Gateway",
        "version": __version__,
        "status": "running"
    }


@app.get("/health")
async def health(manager: LeaseManager = Depends(get_lease_manager)):
    """Health check endpoint, including a lock table round-trip"""
    body = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "lease_duration_seconds": manager.lease_duration_seconds,
        "database": "ok",
    }
    try:
        await manager.ping()
    except LeaseStoreError:
        body.update(status="degraded", database="unreachable")
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body)
    return body


@app.post("/locks/request", response_model=AcquireResponse)
async def request_lock(
    request: LockRequest,
    manager: LeaseManager = Depends(get_lease_manager)
):
    """
    Acquire a lease, or renew it if the caller already holds it

    Denial is a normal outcome and is returned with status 200.
    """
    result = await manager.acquire(request.resource_name, request.process_id)
    return AcquireResponse.from_result(result)


@app.post("/locks/release", response_model=ReleaseResponse)
async def release_lock(
    request: LockRequest,
    manager: LeaseManager = Depends(get_lease_manager)
):
    """Release a lease held by the caller"""
    result = await manager.release(request.resource_name, request.process_id)
    return ReleaseResponse.from_result(result)


@app.get("/locks/status/{resource_name}", response_model=StatusResponse, response_model_exclude_none=True)
async def lock_status(
    resource_name: str = Path(..., min_length=1, max_length=255),
    manager: LeaseManager = Depends(get_lease_manager)
):
    """Report whether a resource is currently locked"""
    _require_identifier(resource_name, "resource_name")
    return StatusResponse.from_status(await manager.status(resource_name))


@app.get("/locks/all-locked", response_model=List[LeaseRecord])
async def all_locked(manager: LeaseManager = Depends(get_lease_manager)):
    """List every active lease"""
    return [LeaseRecord.from_info(lease) for lease in await manager.list_active()]


@app.get("/locks/process/{process_id}", response_model=List[LeaseRecord])
async def locks_by_process(
    process_id: str = Path(..., min_length=1, max_length=255),
    manager: LeaseManager = Depends(get_lease_manager)
):
    """List active leases held by one process"""
    _require_identifier(process_id, "process_id")
    return [LeaseRecord.from_info(lease) for lease in await manager.list_by_holder(process_id)]


def main():
    import uvicorn

    settings = get_settings()
    logging.basicConfig(level=settings.log_level)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
