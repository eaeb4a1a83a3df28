"""Starts and stops the ingestion jobs as connector state changes."""

from __future__ import annotations

import asyncio
import logging

from ops_pilot.connectors import ConnectorRegistry
from ops_pilot.ingestion.gmail import MailboxPoller
from ops_pilot.ingestion.simulator import TrafficSimulator
from ops_pilot.models import ConnectorState, SourceChannel

logger = logging.getLogger(__name__)


class IngestionSupervisor:
    def __init__(
        self,
        *,
        registry: ConnectorRegistry,
        simulator: TrafficSimulator,
        poller: MailboxPoller,
        simulation_enabled: bool = False,
    ) -> None:
        self.registry = registry
        self.simulator = simulator
        self.poller = poller
        self.simulation_enabled = simulation_enabled
        self._unsubscribe = registry.subscribe(self._on_connector_change)

    def set_simulation_enabled(self, enabled: bool) -> None:
        self.simulation_enabled = enabled
        logger.info("ingestion event=simulation_toggle enabled=%s", enabled)
        self.reconcile()

    def reconcile(self) -> None:
        """Bring each job in line with the current connector state."""
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("ingestion event=reconcile_skipped reason=no_running_loop")
            return

        if self.simulation_enabled and self.registry.simulation_sources():
            self.simulator.start()
        else:
            self.simulator.stop()

        if self.registry.get(SourceChannel.GMAIL).polls_live:
            self.poller.start()
        else:
            self.poller.stop()

    async def shutdown(self) -> None:
        self._unsubscribe()
        await self.simulator.aclose()
        await self.poller.aclose()

    def _on_connector_change(self, _state: ConnectorState) -> None:
        self.reconcile()
