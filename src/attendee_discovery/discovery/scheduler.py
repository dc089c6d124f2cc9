"""
Batch scheduler for device probes.

Splits the planned address list into contiguous batches, probes every
address of a batch concurrently, and only moves on once the whole batch has
settled. A slow host therefore delays its own batch by at most one probe
timeout, never the rest of the scan.
"""

import asyncio
import math
from collections.abc import Sequence
from typing import TYPE_CHECKING, Callable, Optional

from attendee_discovery.discovery.aggregator import ResultAggregator
from attendee_discovery.discovery.models import (
    DiscoveredDevice,
    ProbeResult,
    ScanProgress,
    ScanSummary,
)
from attendee_discovery.log import get_structured_logger

if TYPE_CHECKING:
    from attendee_discovery.discovery.probe import DeviceProbe

logger = get_structured_logger(__name__, component="scheduler")

ProgressCallback = Callable[[ScanProgress], None]
DevicesCallback = Callable[[tuple[DiscoveredDevice, ...], tuple[DiscoveredDevice, ...]], None]


class ProbeScheduler:
    """Runs DeviceProbe over an address list, one settled batch at a time."""

    def __init__(
        self,
        probe: "DeviceProbe",
        batch_size: int = 60,
        inter_batch_delay: float = 0.005,
    ):
        """
        Args:
            probe: Object exposing ``async probe(address) -> ProbeResult``
            batch_size: Addresses per batch, also the in-flight probe limit
            inter_batch_delay: Pause between batches to keep the event loop responsive
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.probe = probe
        self.batch_size = batch_size
        self.inter_batch_delay = inter_batch_delay

    def batches(self, addresses: Sequence[str]) -> list[list[str]]:
        """Partition addresses into contiguous, order-preserving batches."""
        return [
            list(addresses[i:i + self.batch_size])
            for i in range(0, len(addresses), self.batch_size)
        ]

    def batch_count(self, total: int) -> int:
        return math.ceil(total / self.batch_size)

    async def _probe_batch(self, batch: list[str]) -> list[ProbeResult]:
        semaphore = asyncio.Semaphore(self.batch_size)

        async def bounded(address: str) -> ProbeResult:
            async with semaphore:
                return await self.probe.probe(address)

        outcomes = await asyncio.gather(
            *(bounded(address) for address in batch),
            return_exceptions=True,
        )

        results = []
        for address, outcome in zip(batch, outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                logger.debug("Probe raised, treating as no device", address=address, error=str(outcome))
                results.append(ProbeResult(address=address))
            else:
                results.append(outcome)
        return results

    async def run(
        self,
        addresses: Sequence[str],
        aggregator: Optional[ResultAggregator] = None,
        progress: Optional[ScanProgress] = None,
        on_progress: Optional[ProgressCallback] = None,
        on_devices: Optional[DevicesCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ScanSummary:
        """
        Probe all addresses batch by batch.

        Args:
            addresses: Planned candidate addresses, in priority order
            aggregator: Device accumulator (a fresh one if omitted)
            progress: Progress record to update (a fresh one if omitted)
            on_progress: Called with the progress record after every batch
            on_devices: Called with (new_devices, snapshot) after every batch
            cancel_event: When set, no further batches are started

        Returns:
            Final ScanSummary; ``cancelled`` is True if the run was stopped early
        """
        if aggregator is None:
            aggregator = ResultAggregator()
        if progress is None:
            progress = ScanProgress()
        batches = self.batches(addresses)

        progress.total_addresses = len(addresses)
        progress.batches_total = len(batches)
        processed = 0
        cancelled = False

        logger.info(
            "Starting probe run",
            addresses=len(addresses),
            batches=len(batches),
            batch_size=self.batch_size,
        )

        for index, batch in enumerate(batches):
            if cancel_event is not None and cancel_event.is_set():
                cancelled = True
                logger.info("Scan cancelled, skipping remaining batches", remaining=len(batches) - index)
                break

            results = await self._probe_batch(batch)
            for result in results:
                aggregator.add(result)

            processed += len(batch)
            progress.advance(processed)
            snapshot, new_devices = aggregator.publish()

            logger.debug(
                "Batch settled",
                batch=index + 1,
                found=len(new_devices),
                percent=round(progress.percent, 1),
            )

            if on_devices is not None and new_devices:
                on_devices(new_devices, snapshot)
            if on_progress is not None:
                on_progress(progress)

            if index + 1 < len(batches):
                await asyncio.sleep(self.inter_batch_delay)

        summary = aggregator.finalize(cancelled=cancelled)
        if not cancelled:
            progress.complete()
            if on_progress is not None:
                on_progress(progress)

        logger.info("Probe run finished", devices=summary.count, cancelled=cancelled)
        return summary
