"""Exception hierarchy for discovery and terminal management."""


class DiscoveryError(Exception):
    """Base class for scan-level failures (fatal to a scan session)."""


class PlannerError(DiscoveryError):
    """Raised when a subnet prefix or priority range is invalid."""


class AggregatorError(DiscoveryError):
    """Raised when results are added to a finalized aggregator."""


class TerminalError(Exception):
    """
    A management call against a single terminal failed.

    Attributes:
        message: User-facing description of the failure
        level: "error" for failures, "info" for notes reported by the device
    """

    def __init__(self, message: str, level: str = "error"):
        super().__init__(message)
        self.message = message
        self.level = level
