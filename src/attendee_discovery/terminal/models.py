"""Data types returned by terminal management calls."""

from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from attendee_discovery.terminal.formatting import format_bytes, format_time_since, format_uptime


@dataclass
class LastScan:
    name: str = ""
    time: str = ""
    message: str = ""


@dataclass
class TerminalStatus:
    """Runtime status reported by ``GET /api/status``."""

    system_initialized: bool = False
    uptime_ms: int = 0
    free_heap: int = 0
    time_since_last_heartbeat_ms: Optional[int] = None
    wifi_connected: Optional[bool] = None
    ssid: Optional[str] = None
    rssi: Optional[int] = None
    last_scan: Optional[LastScan] = None

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "TerminalStatus":
        heartbeat = data.get("heartbeat") or {}
        network = data.get("network") or {}
        last_scan = data.get("lastScan")
        return cls(
            system_initialized=bool(data.get("systemInitialized", False)),
            uptime_ms=int(data.get("uptime", 0) or 0),
            free_heap=int(data.get("freeHeap", 0) or 0),
            time_since_last_heartbeat_ms=heartbeat.get("timeSinceLastHeartbeat"),
            wifi_connected=network.get("wifiConnected"),
            ssid=network.get("ssid"),
            rssi=network.get("rssi"),
            last_scan=(
                LastScan(
                    name=last_scan.get("name", ""),
                    time=last_scan.get("time", ""),
                    message=last_scan.get("message", ""),
                )
                if last_scan and last_scan.get("name")
                else None
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["display"] = {
            "uptime": format_uptime(self.uptime_ms),
            "free_heap": format_bytes(self.free_heap),
            "last_heartbeat": (
                format_time_since(self.time_since_last_heartbeat_ms)
                if self.time_since_last_heartbeat_ms is not None
                else None
            ),
        }
        return data


@dataclass
class LogsInfo:
    """Offline log metadata reported by ``GET /api/logs``."""

    offline_count: int = 0
    used_bytes: int = 0
    total_bytes: int = 0

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "LogsInfo":
        filesystem = data.get("filesystem") or {}
        return cls(
            offline_count=int(data.get("offlineCount", 0) or 0),
            used_bytes=int(filesystem.get("usedBytes", 0) or 0),
            total_bytes=int(filesystem.get("totalBytes", 0) or 0),
        )

    @property
    def usage_percent(self) -> float:
        if not self.total_bytes:
            return 0.0
        return 100.0 * self.used_bytes / self.total_bytes

    def to_dict(self) -> dict[str, Any]:
        return {
            **asdict(self),
            "usage_percent": round(self.usage_percent, 1),
            "display": {
                "used": format_bytes(self.used_bytes),
                "total": format_bytes(self.total_bytes),
            },
        }


@dataclass
class FirmwareFile:
    name: str
    description: str = ""
    type: str = ""
    size: int = 0
    available: bool = True

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "FirmwareFile":
        return cls(
            name=str(data.get("name", "")),
            description=str(data.get("description", "")),
            type=str(data.get("type", "")),
            size=int(data.get("size", 0) or 0),
            available=bool(data.get("available", True)),
        )


@dataclass
class ActionResult:
    success: bool
    message: str = ""


@dataclass
class FirmwareDownload:
    filename: str
    content: bytes = field(repr=False)
    content_type: str = "application/octet-stream"
