"""API client for Leasekeeper Gateway"""
import asyncio
import logging
import os
import time
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from .backoff import BackoffPolicy

logger = logging.getLogger(__name__)


class GatewayClient:
    """Client for interacting with Leasekeeper Gateway API"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: int = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize gateway client

        Args:
            base_url: Gateway base URL (defaults to env GATEWAY_URL)
            timeout: Request timeout in seconds
            transport: Custom httpx transport (tests use MockTransport)
        """
        self.base_url = base_url or os.getenv("GATEWAY_URL", "http://localhost:5000")
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self.transport)

    async def _get(self, path: str) -> Any:
        async with self._client() as client:
            response = await client.get(path)
            response.raise_for_status()
            return response.json()

    async def _post(self, path: str, body: Dict[str, Any]) -> Any:
        async with self._client() as client:
            response = await client.post(path, json=body)
            response.raise_for_status()
            return response.json()

    async def acquire(self, resource_name: str, process_id: str) -> Dict[str, Any]:
        """
        Acquire or renew a lease

        Returns:
            Response with status 'acquired' or 'denied'
        """
        return await self._post(
            "/locks/request",
            {"resource_name": resource_name, "process_id": process_id}
        )

    async def release(self, resource_name: str, process_id: str) -> Dict[str, Any]:
        """
        Release a lease

        Returns:
            Response with status 'released' or 'not_locked_by_process'
        """
        return await self._post(
            "/locks/release",
            {"resource_name": resource_name, "process_id": process_id}
        )

    async def status(self, resource_name: str) -> Dict[str, Any]:
        """Get lock status of a resource"""
        return await self._get(f"/locks/status/{quote(resource_name, safe='')}")

    async def list_active(self) -> List[Dict[str, Any]]:
        """List all active leases"""
        return await self._get("/locks/all-locked")

    async def list_by_process(self, process_id: str) -> List[Dict[str, Any]]:
        """List active leases held by a process"""
        return await self._get(f"/locks/process/{quote(process_id, safe='')}")

    async def wait_for_lease(
        self,
        resource_name: str,
        process_id: str,
        timeout: float,
        policy: Optional[BackoffPolicy] = None,
        sleep=asyncio.sleep
    ) -> Optional[Dict[str, Any]]:
        """
        Poll acquire with backoff until the lease is granted

        Only denials are retried; HTTP and transport errors propagate.

        Args:
            resource_name: Resource to lock
            process_id: Caller identity
            timeout: Give up after this many seconds
            policy: Backoff between attempts
            sleep: Awaitable sleep function

        Returns:
            The acquire response, or None if the deadline passed
        """
        policy = policy or BackoffPolicy()
        deadline = time.monotonic() + timeout

        for attempt, delay in enumerate(policy.delays(), start=1):
            response = await self.acquire(resource_name, process_id)
            if response.get("status") == "acquired":
                return response

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return None

            logger.debug(f"{resource_name} busy (attempt {attempt}), retrying in {delay:.2f}s")
            await sleep(min(delay, remaining))


def run_async(coro):
    """Helper to run async functions in sync context"""
    return asyncio.run(coro)
