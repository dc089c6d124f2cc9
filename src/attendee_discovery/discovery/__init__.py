"""
Network discovery of Attendee terminals.

This package provides:
- Address planning over prioritized host ranges
- Dual-check probing (identity endpoint + TCP reachability)
- Batched, bounded-concurrency scheduling with progress reporting
- Deduplicated result aggregation and scan session management
"""

from attendee_discovery.discovery.aggregator import ResultAggregator
from attendee_discovery.discovery.models import (
    Classification,
    DeviceIdentity,
    DiscoveredDevice,
    ProbeResult,
    ScanProgress,
    ScanSession,
    ScanStatus,
    ScanSummary,
)
from attendee_discovery.discovery.planner import (
    COMMON_SUBNETS,
    DEFAULT_PRIORITY_RANGES,
    PriorityRange,
    plan_addresses,
    select_subnet,
)
from attendee_discovery.discovery.probe import DeviceProbe
from attendee_discovery.discovery.scheduler import ProbeScheduler
from attendee_discovery.discovery.service import DiscoveryService

__all__ = [
    "COMMON_SUBNETS",
    "DEFAULT_PRIORITY_RANGES",
    "Classification",
    "DeviceIdentity",
    "DeviceProbe",
    "DiscoveredDevice",
    "DiscoveryService",
    "PriorityRange",
    "ProbeResult",
    "ProbeScheduler",
    "ResultAggregator",
    "ScanProgress",
    "ScanSession",
    "ScanStatus",
    "ScanSummary",
    "plan_addresses",
    "select_subnet",
]
