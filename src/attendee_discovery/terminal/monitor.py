"""
Background status refresh for the selected terminal.

While a terminal is selected in the admin panel its status and offline log
metadata are refreshed periodically, so the panel always has recent values
without blocking API requests on the device.
"""

import asyncio
import contextlib
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from attendee_discovery.exceptions import TerminalError
from attendee_discovery.terminal.client import TerminalClient
from attendee_discovery.terminal.models import LogsInfo, TerminalStatus

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], TerminalClient]

# Seconds a terminal needs to rejoin WiFi after a network switch
NETWORK_SWITCH_SETTLE_TIME = 5.0


@dataclass
class MonitorSnapshot:
    """Last known values for the selected terminal."""

    address: Optional[str] = None
    status: Optional[TerminalStatus] = None
    logs: Optional[LogsInfo] = None
    last_error: Optional[str] = None
    updated_at: Optional[float] = None
    errors: list[str] = field(default_factory=list)

    @property
    def age(self) -> Optional[float]:
        if self.updated_at is None:
            return None
        return time.time() - self.updated_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "status": self.status.to_dict() if self.status else None,
            "logs": self.logs.to_dict() if self.logs else None,
            "last_error": self.last_error,
            "updated_at": self.updated_at,
        }


class TerminalMonitor:
    """Polls the selected terminal every ``refresh_interval`` seconds."""

    def __init__(
        self,
        client_factory: ClientFactory,
        refresh_interval: float = 30.0,
    ):
        """
        Args:
            client_factory: Builds a TerminalClient for an address
            refresh_interval: Seconds between refreshes (default: 30)
        """
        self.refresh_interval = refresh_interval
        self._client_factory = client_factory
        self._client: Optional[TerminalClient] = None
        self._snapshot = MonitorSnapshot()
        self._polling_task: Optional[asyncio.Task] = None
        self._delayed_refresh: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    @property
    def selected(self) -> Optional[str]:
        return self._snapshot.address

    def snapshot(self) -> MonitorSnapshot:
        return self._snapshot

    async def select(self, address: str) -> MonitorSnapshot:
        """Select a terminal and refresh it immediately."""
        self._cancel_delayed_refresh()
        if self._client is not None:
            await self._client.close()
        self._client = self._client_factory(address)
        self._snapshot = MonitorSnapshot(address=address)
        logger.info(f"Monitoring terminal {address}")
        return await self.refresh()

    async def clear(self) -> None:
        """Forget the selected terminal."""
        self._cancel_delayed_refresh()
        if self._client is not None:
            await self._client.close()
        self._client = None
        self._snapshot = MonitorSnapshot()

    async def refresh(self) -> MonitorSnapshot:
        """Fetch status and logs of the selected terminal; failures are recorded, not raised."""
        client = self._client
        if client is None:
            return self._snapshot

        snapshot = self._snapshot
        status, logs = await asyncio.gather(
            client.get_status(),
            client.get_logs(),
            return_exceptions=True,
        )

        # Selection changed while the requests were in flight
        if self._snapshot is not snapshot:
            return self._snapshot

        errors = []
        if isinstance(status, TerminalError):
            errors.append(status.message)
        elif isinstance(status, BaseException):
            raise status
        else:
            snapshot.status = status

        if isinstance(logs, TerminalError):
            errors.append(logs.message)
        elif isinstance(logs, BaseException):
            raise logs
        else:
            snapshot.logs = logs

        snapshot.errors = errors
        snapshot.last_error = errors[-1] if errors else None
        if not errors:
            snapshot.updated_at = time.time()
        else:
            logger.warning(f"Refresh of {snapshot.address} failed: {'; '.join(errors)}")
        return snapshot

    def schedule_refresh(self, delay: float) -> None:
        """
        Refresh the selected terminal once after ``delay`` seconds.

        Used after actions whose effect shows up later, such as a network
        switch. A newer request replaces a pending one; clearing the
        selection drops it.
        """
        self._cancel_delayed_refresh()
        self._delayed_refresh = asyncio.create_task(self._refresh_after(delay))

    async def _refresh_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        try:
            await self.refresh()
        except Exception as e:
            logger.error(f"Error refreshing terminal: {e}", exc_info=True)

    def _cancel_delayed_refresh(self) -> None:
        if self._delayed_refresh is not None and not self._delayed_refresh.done():
            self._delayed_refresh.cancel()
        self._delayed_refresh = None

    async def _polling_loop(self) -> None:
        logger.info("Terminal monitor loop started")

        while not self._stop_event.is_set():
            cycle_start = time.time()
            if self._client is not None:
                try:
                    await self.refresh()
                except Exception as e:
                    logger.error(f"Error refreshing terminal: {e}", exc_info=True)

            elapsed = time.time() - cycle_start
            wait_time = max(0, self.refresh_interval - elapsed)
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._stop_event.wait(), timeout=wait_time)

        logger.info("Terminal monitor loop stopped")

    async def start(self) -> None:
        """Start the background refresh task."""
        if self._polling_task is not None and not self._polling_task.done():
            logger.warning("Terminal monitor already running")
            return

        self._stop_event.clear()
        self._polling_task = asyncio.create_task(self._polling_loop())

    async def stop(self) -> None:
        """Stop the background refresh task and close the client."""
        if self._polling_task is not None and not self._polling_task.done():
            self._stop_event.set()
            try:
                await asyncio.wait_for(self._polling_task, timeout=5.0)
            except asyncio.TimeoutError:
                logger.warning("Terminal monitor did not stop gracefully, cancelling")
                self._polling_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._polling_task
        await self.clear()

    @property
    def is_running(self) -> bool:
        return self._polling_task is not None and not self._polling_task.done()
