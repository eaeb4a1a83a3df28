"""Registry of external signal sources and their auto-trigger preference."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Callable

from ops_pilot.errors import ConnectorStateError, UnknownConnectorError
from ops_pilot.models import ConnectorState, SourceChannel

logger = logging.getLogger(__name__)

ConnectorListener = Callable[[ConnectorState], None]

DEFAULT_CONNECTORS = (
    ConnectorState(
        connector_id=SourceChannel.SLACK,
        name="Slack",
        description="Listen to engineering and product channels.",
    ),
    ConnectorState(
        connector_id=SourceChannel.GMAIL,
        name="Gmail",
        description="Monitor support and info inboxes.",
    ),
    ConnectorState(
        connector_id=SourceChannel.NOTION,
        name="Notion",
        description="Watch for new pages in Product Workspace.",
    ),
)


class ConnectorRegistry:
    def __init__(self, connectors: tuple[ConnectorState, ...] = DEFAULT_CONNECTORS) -> None:
        self._connectors: dict[SourceChannel, ConnectorState] = {
            item.connector_id: item for item in connectors
        }
        self._listeners: list[ConnectorListener] = []

    def get(self, connector_id: str | SourceChannel) -> ConnectorState:
        return self._connectors[self._key(connector_id)]

    def list_connectors(self) -> list[ConnectorState]:
        return list(self._connectors.values())

    def connect(
        self,
        connector_id: str | SourceChannel,
        *,
        account: str,
        credential: str | None = None,
    ) -> ConnectorState:
        current = self.get(connector_id)
        updated = current.model_copy(
            update={
                "connected": True,
                "account": account,
                "credential": credential or None,
                "last_sync": datetime.now(UTC),
            }
        )
        logger.info(
            "connector event=connect connector=%s live=%s",
            updated.connector_id.value,
            updated.polls_live,
        )
        return self._write(updated)

    def disconnect(self, connector_id: str | SourceChannel) -> ConnectorState:
        current = self.get(connector_id)
        updated = current.model_copy(
            update={
                "connected": False,
                "auto_trigger": False,
                "account": None,
                "credential": None,
            }
        )
        logger.info("connector event=disconnect connector=%s", updated.connector_id.value)
        return self._write(updated)

    def set_auto_trigger(self, connector_id: str | SourceChannel, enabled: bool) -> ConnectorState:
        current = self.get(connector_id)
        if enabled and not current.connected:
            raise ConnectorStateError(
                f"Connector {current.connector_id.value} must be connected before enabling auto-trigger"
            )
        return self._write(current.model_copy(update={"auto_trigger": enabled}))

    def mark_synced(self, connector_id: str | SourceChannel) -> ConnectorState:
        current = self.get(connector_id)
        return self._write(current.model_copy(update={"last_sync": datetime.now(UTC)}))

    def auto_trigger_enabled(self, connector_id: str | SourceChannel) -> bool:
        try:
            state = self.get(connector_id)
        except UnknownConnectorError:
            return False
        return state.connected and state.auto_trigger

    def simulation_sources(self) -> list[SourceChannel]:
        """Connected sources fed by simulated traffic rather than a live poller."""
        return [
            item.connector_id
            for item in self._connectors.values()
            if item.connected and not item.polls_live
        ]

    def active_count(self) -> int:
        return sum(1 for item in self._connectors.values() if item.connected)

    def subscribe(self, listener: ConnectorListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _key(self, connector_id: str | SourceChannel) -> SourceChannel:
        try:
            key = SourceChannel.parse(connector_id)
        except ValueError as exc:
            raise UnknownConnectorError(f"Unknown connector: {connector_id}") from exc
        if key not in self._connectors:
            raise UnknownConnectorError(f"Unknown connector: {connector_id}")
        return key

    def _write(self, state: ConnectorState) -> ConnectorState:
        self._connectors[state.connector_id] = state
        for listener in list(self._listeners):
            listener(state)
        return state
