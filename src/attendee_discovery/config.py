"""Configuration loading and validation"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

# Default config search paths (in order)
CONFIG_PATHS = [
    Path("config.yaml"),
    Path.home() / ".config" / "attendee-discovery" / "config.yaml",
    Path("/etc/attendee-discovery/config.yaml"),
]


def _default_subnets() -> list[str]:
    from attendee_discovery.discovery.planner import COMMON_SUBNETS

    return list(COMMON_SUBNETS)


def _default_ranges() -> list[tuple[int, int]]:
    from attendee_discovery.discovery.planner import DEFAULT_PRIORITY_RANGES

    return [(r.start, r.end) for r in DEFAULT_PRIORITY_RANGES]


@dataclass
class DiscoveryConfig:
    """Network scan settings"""

    subnet: Optional[str] = None  # Explicit prefix, e.g. "10.0.0"; None picks the shortlist head
    subnets: list[str] = field(default_factory=_default_subnets)
    priority_ranges: list[tuple[int, int]] = field(default_factory=_default_ranges)
    batch_size: int = 60
    probe_timeout: float = 0.4  # seconds, shared by both sub-checks
    port: int = 80
    identity_path: str = "/api/config"
    inter_batch_delay: float = 0.005


@dataclass
class TerminalConfig:
    """Settings for management calls against a selected terminal"""

    request_timeout: float = 5.0
    refresh_interval: float = 30.0
    port: int = 80


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: str = ""


@dataclass
class WebConfig:
    host: str = "0.0.0.0"
    port: int = 8080


@dataclass
class Config:
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    terminal: TerminalConfig = field(default_factory=TerminalConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    web: WebConfig = field(default_factory=WebConfig)


def find_config_file() -> Optional[Path]:
    """Find config file in standard locations"""
    for path in CONFIG_PATHS:
        if path.exists():
            return path
    return None


def _parse_discovery(data: dict) -> DiscoveryConfig:
    data = dict(data)
    ranges = data.pop("priority_ranges", None)
    config = DiscoveryConfig(**data)
    if ranges is not None:
        config.priority_ranges = [(int(start), int(end)) for start, end in ranges]
    return config


def load_config(config_path: Optional[str] = None) -> Config:
    """Load configuration from YAML file"""
    if config_path:
        path: Optional[Path] = Path(config_path)
    else:
        path = find_config_file()

    if path is None or not path.exists():
        logger.warning("No config file found, using defaults")
        return Config()

    logger.info(f"Loading config from: {path}")

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    return Config(
        discovery=_parse_discovery(data.get("discovery", {})),
        terminal=TerminalConfig(**data.get("terminal", {})),
        logging=LoggingConfig(**data.get("logging", {})),
        web=WebConfig(**data.get("web", {})),
    )
