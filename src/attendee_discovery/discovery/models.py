"""
Data classes for discovery results.

Provides structured data types for probe outcomes, discovered devices,
scan progress, and scan sessions.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

# Decorative tag carried by generic devices; no detection logic backs it
GENERIC_DEVICE_TYPE = "network_device"
RECOGNIZED_DEVICE_TYPE = "attendee"
DISPLAY_ID_LENGTH = 8


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Classification(str, Enum):
    """How a discovered host was identified."""

    RECOGNIZED = "recognized"
    GENERIC = "generic"


class ScanStatus(str, Enum):
    """Status of a scan session."""

    PENDING = "pending"
    SCANNING = "scanning"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True)
class DeviceIdentity:
    """Identity fields decoded from a terminal's configuration endpoint."""

    device_id: str
    firmware_version: str
    is_online: Optional[bool] = None

    @classmethod
    def from_payload(cls, payload: Any) -> Optional["DeviceIdentity"]:
        """Build an identity from a decoded JSON body, or None if fields are missing."""
        if not isinstance(payload, dict):
            return None
        device_id = payload.get("deviceId")
        firmware_version = payload.get("firmwareVersion")
        if not device_id or not firmware_version:
            return None
        is_online = payload.get("isOnline")
        return cls(
            device_id=str(device_id),
            firmware_version=str(firmware_version),
            is_online=is_online if isinstance(is_online, bool) else None,
        )


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of probing one candidate address."""

    address: str
    reachable: bool = False
    recognized: bool = False
    identity: Optional[DeviceIdentity] = None

    @property
    def found(self) -> bool:
        return self.recognized or self.reachable


@dataclass(frozen=True)
class DiscoveredDevice:
    """A host that answered during a scan session."""

    id: str
    address: str
    display_name: str
    classification: Classification
    device_id: str
    device_type: str
    firmware_version: Optional[str] = None
    is_online: Optional[bool] = None
    last_seen: datetime = field(default_factory=_utcnow)

    @classmethod
    def from_probe(cls, result: ProbeResult) -> Optional["DiscoveredDevice"]:
        """
        Map a probe outcome to a device entry.

        Recognized identity wins over plain reachability; a result with
        neither yields None.
        """
        if result.recognized and result.identity is not None:
            identity = result.identity
            return cls(
                id=f"attendee_{result.address}",
                address=result.address,
                display_name=f"Attendee ({identity.device_id[:DISPLAY_ID_LENGTH]})",
                classification=Classification.RECOGNIZED,
                device_id=identity.device_id,
                device_type=RECOGNIZED_DEVICE_TYPE,
                firmware_version=identity.firmware_version,
                is_online=identity.is_online,
            )
        if result.reachable:
            return cls(
                id=f"device_{result.address}",
                address=result.address,
                display_name=f"Network Device ({result.address})",
                classification=Classification.GENERIC,
                device_id="DEV_" + result.address.replace(".", "_"),
                device_type=GENERIC_DEVICE_TYPE,
                is_online=True,
            )
        return None

    @property
    def is_recognized(self) -> bool:
        return self.classification is Classification.RECOGNIZED

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "address": self.address,
            "display_name": self.display_name,
            "classification": self.classification.value,
            "device_id": self.device_id,
            "device_type": self.device_type,
            "firmware_version": self.firmware_version,
            "is_online": self.is_online,
            "last_seen": self.last_seen.isoformat(),
        }


@dataclass
class ScanProgress:
    """Progress tracking for a scan session."""

    total_addresses: int = 0
    processed_addresses: int = 0
    batches_total: int = 0
    batches_done: int = 0
    percent: float = 0.0

    def advance(self, processed: int) -> None:
        """Record a settled batch; percent never decreases."""
        self.batches_done += 1
        self.processed_addresses = min(self.total_addresses, processed)
        if self.total_addresses:
            percent = min(100.0, 100.0 * self.processed_addresses / self.total_addresses)
        else:
            percent = 0.0
        self.percent = max(self.percent, percent)

    def complete(self) -> None:
        self.percent = 100.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_addresses": self.total_addresses,
            "processed_addresses": self.processed_addresses,
            "batches_total": self.batches_total,
            "batches_done": self.batches_done,
            "percent": round(self.percent, 1),
        }


@dataclass(frozen=True)
class ScanSummary:
    """Final result of a scan run."""

    devices: tuple[DiscoveredDevice, ...] = ()
    cancelled: bool = False

    @property
    def count(self) -> int:
        return len(self.devices)

    @property
    def message(self) -> str:
        return f"Found {self.count} devices on network"


@dataclass
class ScanSession:
    """One user-triggered discovery run."""

    subnet: str
    priority_ranges: list[tuple[int, int]]
    batch_size: int
    probe_timeout: float
    scan_id: UUID = field(default_factory=uuid4)
    status: ScanStatus = ScanStatus.PENDING
    progress: ScanProgress = field(default_factory=ScanProgress)
    devices: tuple[DiscoveredDevice, ...] = ()
    message: str = ""
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_running(self) -> bool:
        return self.status in (ScanStatus.PENDING, ScanStatus.SCANNING)

    @property
    def count(self) -> int:
        return len(self.devices)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "scan_id": str(self.scan_id),
            "subnet": self.subnet,
            "priority_ranges": [list(r) for r in self.priority_ranges],
            "batch_size": self.batch_size,
            "probe_timeout": self.probe_timeout,
            "status": self.status.value,
            "progress": self.progress.to_dict(),
            "devices": [d.to_dict() for d in self.devices],
            "count": self.count,
            "message": self.message,
            "error": self.error,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
