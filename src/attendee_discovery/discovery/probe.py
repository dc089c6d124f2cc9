"""
Single-address device probe.

Classifies one candidate address by running two checks concurrently under
one shared deadline:

- identity check: GET the terminal configuration endpoint and look for a
  device identifier and a firmware version
- reachability check: open a TCP connection to the web port

Every failure is turned into a negative outcome here; nothing raised by a
check reaches the caller.
"""

import asyncio
import contextlib
import logging
from typing import Optional

import httpx

from attendee_discovery.discovery.models import DeviceIdentity, ProbeResult

logger = logging.getLogger(__name__)


class DeviceProbe:
    """Dual-check classifier for candidate addresses."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        timeout: float = 0.4,
        port: int = 80,
        identity_path: str = "/api/config",
    ):
        """
        Args:
            client: Shared HTTP client used for identity checks
            timeout: Deadline in seconds shared by both checks
            port: Web port of the terminals
            identity_path: Configuration endpoint path
        """
        self.client = client
        self.timeout = timeout
        self.port = port
        self.identity_path = identity_path

    def identity_url(self, address: str) -> str:
        if self.port == 80:
            return f"http://{address}{self.identity_path}"
        return f"http://{address}:{self.port}{self.identity_path}"

    async def check_identity(self, address: str) -> Optional[DeviceIdentity]:
        """Ask the address for its terminal configuration."""
        try:
            response = await self.client.get(self.identity_url(address))
            if not response.is_success:
                return None
            return DeviceIdentity.from_payload(response.json())
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"Identity check failed for {address}: {e}")
            return None

    async def check_reachable(self, address: str) -> bool:
        """Best-effort TCP connect to the web port."""
        try:
            _, writer = await asyncio.open_connection(address, self.port)
        except OSError:
            return False
        writer.close()
        with contextlib.suppress(OSError):
            await writer.wait_closed()
        return True

    async def probe(self, address: str) -> ProbeResult:
        """
        Classify an address.

        Returns:
            ProbeResult; recognized when the identity check succeeded,
            reachable when a connection completed, neither otherwise.
        """
        identity_task = asyncio.create_task(self.check_identity(address))
        reachable_task = asyncio.create_task(self.check_reachable(address))
        tasks = {identity_task, reachable_task}

        try:
            _, pending = await asyncio.wait(tasks, timeout=self.timeout)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            raise

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        identity = _outcome(identity_task, address)
        reachable = bool(_outcome(reachable_task, address))

        if identity is not None:
            logger.debug(f"Recognized terminal {identity.device_id} at {address}")
            return ProbeResult(address=address, reachable=reachable, recognized=True, identity=identity)
        return ProbeResult(address=address, reachable=reachable)


def _outcome(task: asyncio.Task, address: str):
    """Result of a settled check, or None when it timed out or failed."""
    if not task.done() or task.cancelled():
        return None
    exc = task.exception()
    if exc is not None:
        logger.debug(f"Probe check for {address} raised {exc!r}")
        return None
    return task.result()
