"""
Candidate address planning.

Turns a subnet prefix and a priority-ordered list of host-octet ranges into
one ordered list of addresses to probe. Ranges most likely to hold a live
host come first so that terminals show up early in the scan.
"""

import logging
from collections.abc import Iterable, Sequence
from typing import NamedTuple, Optional

from attendee_discovery.exceptions import PlannerError

logger = logging.getLogger(__name__)

# Common private prefixes, most likely first. Not derived from interfaces.
COMMON_SUBNETS = ["192.168.1", "192.168.0", "10.0.0", "172.16.0", "192.168.4"]


class PriorityRange(NamedTuple):
    """Inclusive host-octet range."""

    start: int
    end: int

    @property
    def size(self) -> int:
        return self.end - self.start + 1


DEFAULT_PRIORITY_RANGES = (
    PriorityRange(100, 120),  # Primary DHCP lease range
    PriorityRange(1, 10),  # Gateway/router range
    PriorityRange(150, 170),  # Extended DHCP
    PriorityRange(20, 40),  # Static assignments
    PriorityRange(200, 220),  # High range
)


def select_subnet(
    override: Optional[str] = None,
    candidates: Sequence[str] = COMMON_SUBNETS,
) -> str:
    """
    Pick the subnet prefix to scan.

    Args:
        override: Explicitly configured prefix, used as-is when set
        candidates: Shortlist of common private prefixes

    Returns:
        A three-octet prefix such as "192.168.1"
    """
    if override:
        return validate_subnet(override)
    if not candidates:
        raise PlannerError("No candidate subnets configured")
    return validate_subnet(candidates[0])


def validate_subnet(subnet: str) -> str:
    """Check that subnet is three dotted octets and return it normalized."""
    parts = subnet.strip().rstrip(".").split(".")
    if len(parts) != 3:
        raise PlannerError(f"Subnet prefix must have three octets: {subnet!r}")
    octets = []
    for part in parts:
        if not part.isdigit() or not 0 <= int(part) <= 255:
            raise PlannerError(f"Invalid octet {part!r} in subnet prefix {subnet!r}")
        octets.append(str(int(part)))
    return ".".join(octets)


def to_range(value: Iterable[int]) -> PriorityRange:
    """Coerce a (start, end) pair into a validated PriorityRange."""
    try:
        start, end = (int(v) for v in value)
    except (TypeError, ValueError) as e:
        raise PlannerError(f"Priority range must be a (start, end) pair: {value!r}") from e
    if not 0 <= start <= end <= 255:
        raise PlannerError(f"Priority range out of bounds: ({start}, {end})")
    return PriorityRange(start, end)


def generate_ip_range(subnet: str, start: int, end: int) -> list[str]:
    """All addresses subnet.start .. subnet.end, inclusive."""
    return [f"{subnet}.{octet}" for octet in range(start, end + 1)]


def plan_addresses(subnet: str, ranges: Iterable[Iterable[int]]) -> list[str]:
    """
    Build the ordered candidate list for a scan.

    Ranges are concatenated in the order given. Overlapping ranges produce
    duplicate addresses; they are not filtered.

    Raises:
        PlannerError: If the subnet or a range is invalid
    """
    prefix = validate_subnet(subnet)
    addresses: list[str] = []
    for value in ranges:
        priority_range = to_range(value)
        addresses.extend(generate_ip_range(prefix, priority_range.start, priority_range.end))

    logger.debug(f"Planned {len(addresses)} candidate addresses on {prefix}.x")
    return addresses
