"""
Discovery service for orchestrating scan sessions.

Wires planner, probe, scheduler and aggregator together for one
user-triggered scan and keeps the live session readable while it runs.
Only one session exists at a time; starting a new scan cancels and
replaces the previous one.
"""

import asyncio
import contextlib
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, Optional

import httpx

from attendee_discovery.discovery.aggregator import ResultAggregator
from attendee_discovery.discovery.models import (
    DiscoveredDevice,
    ScanProgress,
    ScanSession,
    ScanStatus,
)
from attendee_discovery.discovery.planner import plan_addresses, select_subnet, to_range
from attendee_discovery.discovery.probe import DeviceProbe
from attendee_discovery.discovery.scheduler import (
    DevicesCallback,
    ProbeScheduler,
    ProgressCallback,
)
from attendee_discovery.log import get_structured_logger

if TYPE_CHECKING:
    from attendee_discovery.config import DiscoveryConfig

logger = get_structured_logger(__name__, component="discovery")

SCAN_FAILED_MESSAGE = "Failed to scan network for devices"

ProbeFactory = Callable[[httpx.AsyncClient, float], DeviceProbe]


class DiscoveryService:
    """
    Owns scan sessions for the admin panel.

    Supports:
    - Foreground scans (``scan``) for the CLI
    - Background scans (``start_scan``) polled by the web API
    - Cancellation between batches
    """

    def __init__(
        self,
        config: "DiscoveryConfig",
        client: Optional[httpx.AsyncClient] = None,
        probe_factory: Optional[ProbeFactory] = None,
    ):
        """
        Args:
            config: Discovery settings
            client: Shared HTTP client for identity checks (created lazily if omitted)
            probe_factory: Builds the probe for a session from (client, timeout)
        """
        self.config = config
        self._client = client
        self._owns_client = client is None
        self._probe_factory = probe_factory or self._default_probe
        self._session: Optional[ScanSession] = None
        self._task: Optional[asyncio.Task] = None
        self._cancel_event: Optional[asyncio.Event] = None
        self._start_lock = asyncio.Lock()

    def _default_probe(self, client: httpx.AsyncClient, timeout: float) -> DeviceProbe:
        return DeviceProbe(
            client,
            timeout=timeout,
            port=self.config.port,
            identity_path=self.config.identity_path,
        )

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            # Every probe of a batch needs its own connection at once; the
            # scheduler bounds concurrency, not the pool
            self._client = httpx.AsyncClient(
                limits=httpx.Limits(max_connections=None, max_keepalive_connections=0),
                trust_env=False,
            )
        return self._client

    @property
    def current_session(self) -> Optional[ScanSession]:
        return self._session

    @property
    def is_scanning(self) -> bool:
        return self._session is not None and self._session.is_running

    def create_session(
        self,
        subnet: Optional[str] = None,
        ranges: Optional[Iterable[Iterable[int]]] = None,
        batch_size: Optional[int] = None,
        probe_timeout: Optional[float] = None,
    ) -> ScanSession:
        """Build a pending session from config plus per-scan overrides."""
        return ScanSession(
            subnet=subnet or self.config.subnet or "",
            priority_ranges=[tuple(r) for r in (ranges or self.config.priority_ranges)],
            batch_size=batch_size or self.config.batch_size,
            probe_timeout=probe_timeout or self.config.probe_timeout,
        )

    async def run_session(
        self,
        session: ScanSession,
        on_progress: Optional[ProgressCallback] = None,
        on_devices: Optional[DevicesCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ScanSession:
        """
        Run a session to completion.

        Scan-level errors (invalid plan, aggregator misuse) end the session
        as failed with partial results discarded. They are not re-raised.
        """
        session.status = ScanStatus.SCANNING
        session.started_at = datetime.now(timezone.utc)
        session.progress = ScanProgress()

        def publish_devices(
            new_devices: tuple[DiscoveredDevice, ...],
            snapshot: tuple[DiscoveredDevice, ...],
        ) -> None:
            session.devices = snapshot
            if on_devices is not None:
                on_devices(new_devices, snapshot)

        try:
            session.subnet = select_subnet(session.subnet or None, self.config.subnets)
            session.priority_ranges = [tuple(to_range(r)) for r in session.priority_ranges]
            addresses = plan_addresses(session.subnet, session.priority_ranges)

            logger.info(
                "Scan session started",
                scan_id=str(session.scan_id),
                subnet=session.subnet,
                addresses=len(addresses),
            )

            probe = self._probe_factory(self._ensure_client(), session.probe_timeout)
            scheduler = ProbeScheduler(
                probe,
                batch_size=session.batch_size,
                inter_batch_delay=self.config.inter_batch_delay,
            )
            summary = await scheduler.run(
                addresses,
                aggregator=ResultAggregator(),
                progress=session.progress,
                on_progress=on_progress,
                on_devices=publish_devices,
                cancel_event=cancel_event,
            )

            session.devices = summary.devices
            session.message = summary.message
            session.status = ScanStatus.CANCELLED if summary.cancelled else ScanStatus.COMPLETED
            logger.info(
                "Scan session finished",
                scan_id=str(session.scan_id),
                status=session.status.value,
                devices=summary.count,
            )

        except asyncio.CancelledError:
            session.status = ScanStatus.CANCELLED
            session.message = "Scan cancelled"
            logger.info("Scan session task cancelled", scan_id=str(session.scan_id))
            raise

        except Exception as e:
            session.status = ScanStatus.FAILED
            session.devices = ()
            session.error = SCAN_FAILED_MESSAGE
            session.message = SCAN_FAILED_MESSAGE
            logger.error("Scan session failed", scan_id=str(session.scan_id), error=str(e))

        finally:
            session.completed_at = datetime.now(timezone.utc)

        return session

    async def scan(
        self,
        subnet: Optional[str] = None,
        ranges: Optional[Iterable[Iterable[int]]] = None,
        batch_size: Optional[int] = None,
        probe_timeout: Optional[float] = None,
        on_progress: Optional[ProgressCallback] = None,
        on_devices: Optional[DevicesCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ScanSession:
        """Run one scan in the foreground and return the finished session."""
        session = self.create_session(subnet, ranges, batch_size, probe_timeout)
        self._session = session
        return await self.run_session(session, on_progress, on_devices, cancel_event)

    async def start_scan(
        self,
        subnet: Optional[str] = None,
        ranges: Optional[Iterable[Iterable[int]]] = None,
        batch_size: Optional[int] = None,
        probe_timeout: Optional[float] = None,
    ) -> ScanSession:
        """
        Start a background scan, replacing any running session.

        Returns:
            The new session; poll ``current_session`` for progress.
        """
        # Overlapping starts each replace the session the previous one created
        async with self._start_lock:
            await self.cancel_scan(wait=True)

            session = self.create_session(subnet, ranges, batch_size, probe_timeout)
            cancel_event = asyncio.Event()
            self._session = session
            self._cancel_event = cancel_event
            self._task = asyncio.create_task(
                self.run_session(session, cancel_event=cancel_event),
                name=f"scan-{session.scan_id}",
            )
            return session

    async def cancel_scan(self, wait: bool = False) -> bool:
        """
        Stop scheduling further batches of the running session.

        Args:
            wait: Wait for the in-flight batch to drain

        Returns:
            True if a running session was signalled
        """
        task = self._task
        if task is None or task.done():
            return False

        if self._cancel_event is not None:
            self._cancel_event.set()
        if wait:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        return True

    async def wait(self) -> Optional[ScanSession]:
        """Wait for the background session (if any) to finish."""
        if self._task is not None and not self._task.done():
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        return self._session

    async def close(self) -> None:
        """Cancel any running session and release the HTTP client."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        # A task cancelled before its first step never touches the session
        if self._session is not None and self._session.is_running:
            self._session.status = ScanStatus.CANCELLED
            self._session.message = "Scan cancelled"
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
