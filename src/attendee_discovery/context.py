"""
Application context for dependency injection.

Holds the configuration, the discovery service and the terminal monitor so
the CLI and the web app share one set of components.

Usage:
    config = load_config()
    context = AppContext.create(config)
    await context.start()

    app = create_app(context=context)

    # On shutdown
    await context.shutdown()
"""

import logging
from dataclasses import dataclass, field

from attendee_discovery.config import Config
from attendee_discovery.discovery.service import DiscoveryService
from attendee_discovery.terminal.client import TerminalClient
from attendee_discovery.terminal.monitor import TerminalMonitor

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """
    Application context containing all shared dependencies.

    Attributes:
        config: Application configuration loaded from YAML
        discovery: Scan session service
        monitor: Background refresher for the selected terminal
    """

    config: Config
    discovery: DiscoveryService
    monitor: TerminalMonitor
    _started: bool = field(default=False, repr=False)

    @classmethod
    def create(cls, config: Config) -> "AppContext":
        """Factory method wiring components from configuration."""
        discovery = DiscoveryService(config.discovery)
        monitor = TerminalMonitor(
            client_factory=lambda address: cls.terminal_client_for(config, address),
            refresh_interval=config.terminal.refresh_interval,
        )
        logger.debug(
            f"Created AppContext (batch_size={config.discovery.batch_size}, "
            f"probe_timeout={config.discovery.probe_timeout}s)"
        )
        return cls(config=config, discovery=discovery, monitor=monitor)

    @staticmethod
    def terminal_client_for(config: Config, address: str) -> TerminalClient:
        return TerminalClient(
            address,
            timeout=config.terminal.request_timeout,
            port=config.terminal.port,
        )

    def terminal_client(self, address: str) -> TerminalClient:
        """Build a client for one management call against address."""
        return self.terminal_client_for(self.config, address)

    async def start(self) -> None:
        """Start background components."""
        if self._started:
            logger.warning("AppContext already started, ignoring start() call")
            return
        await self.monitor.start()
        self._started = True
        logger.info("AppContext started")

    async def shutdown(self) -> None:
        """
        Clean shutdown of all components.

        Safe to call multiple times or before start().
        """
        if not self._started:
            logger.debug("AppContext not started, nothing to shutdown")
            return

        logger.info("Shutting down AppContext...")
        await self.monitor.stop()
        await self.discovery.close()
        self._started = False
        logger.info("AppContext shutdown complete")

    @property
    def is_started(self) -> bool:
        return self._started
