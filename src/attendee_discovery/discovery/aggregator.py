"""Accumulation and publication of discovered devices for one scan session."""

import logging
from typing import Optional

from attendee_discovery.discovery.models import DiscoveredDevice, ProbeResult, ScanSummary
from attendee_discovery.exceptions import AggregatorError

logger = logging.getLogger(__name__)


class ResultAggregator:
    """
    Collects probe outcomes into a deduplicated device list.

    Readers only ever see published snapshots (immutable tuples), so a
    snapshot taken mid-scan is never half-updated. The list only grows
    until finalize() closes it.
    """

    def __init__(self) -> None:
        self._devices: dict[str, DiscoveredDevice] = {}
        self._published: tuple[DiscoveredDevice, ...] = ()
        self._finalized = False

    def add(self, result: ProbeResult) -> Optional[DiscoveredDevice]:
        """
        Record a probe outcome.

        Returns:
            The new device, or None if nothing was found or the address is
            already recorded this session.
        """
        if self._finalized:
            raise AggregatorError("Cannot add results to a finalized scan")

        if result.address in self._devices:
            return None

        device = DiscoveredDevice.from_probe(result)
        if device is None:
            return None

        self._devices[result.address] = device
        logger.debug(f"Discovered {device.classification.value} device at {device.address}")
        return device

    def publish(self) -> tuple[tuple[DiscoveredDevice, ...], tuple[DiscoveredDevice, ...]]:
        """
        Publish the current device list.

        Returns:
            (snapshot, new_devices) where new_devices are those added since
            the previous publish
        """
        snapshot = tuple(self._devices.values())
        new_devices = snapshot[len(self._published):]
        self._published = snapshot
        return snapshot, new_devices

    def snapshot(self) -> tuple[DiscoveredDevice, ...]:
        """Last published device list."""
        return self._published

    def finalize(self, cancelled: bool = False) -> ScanSummary:
        """Close the session and return the final summary."""
        snapshot, _ = self.publish()
        self._finalized = True
        return ScanSummary(devices=snapshot, cancelled=cancelled)

    @property
    def is_finalized(self) -> bool:
        return self._finalized

    def __len__(self) -> int:
        return len(self._devices)
