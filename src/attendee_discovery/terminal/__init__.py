"""Management of a single discovered Attendee terminal."""

from attendee_discovery.terminal.client import TerminalClient
from attendee_discovery.terminal.monitor import MonitorSnapshot, TerminalMonitor
from attendee_discovery.terminal.models import (
    ActionResult,
    FirmwareDownload,
    FirmwareFile,
    LogsInfo,
    TerminalStatus,
)

__all__ = [
    "ActionResult",
    "FirmwareDownload",
    "FirmwareFile",
    "LogsInfo",
    "MonitorSnapshot",
    "TerminalClient",
    "TerminalMonitor",
    "TerminalStatus",
]
