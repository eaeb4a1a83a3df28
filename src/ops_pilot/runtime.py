"""Wiring of the pipeline components into one runtime object."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Callable

from ops_pilot.auto_trigger import AutoTriggerRule
from ops_pilot.backends.selector import BackendSelector
from ops_pilot.config.settings import Settings
from ops_pilot.connectors import ConnectorRegistry
from ops_pilot.ingestion.gmail import GmailClient, MailboxPoller
from ops_pilot.ingestion.simulator import TrafficSimulator
from ops_pilot.ingestion.supervisor import IngestionSupervisor
from ops_pilot.models import ConnectorState, PipelineStage, TraceStep
from ops_pilot.orchestrator import PipelineOrchestrator
from ops_pilot.storage.memory import InMemoryTaskStore
from ops_pilot.trace import TraceRecorder


@dataclass
class OpsRuntime:
    settings: Settings
    store: InMemoryTaskStore
    trace: TraceRecorder
    registry: ConnectorRegistry
    selector: BackendSelector
    orchestrator: PipelineOrchestrator
    auto_trigger: AutoTriggerRule
    simulator: TrafficSimulator
    poller: MailboxPoller
    supervisor: IngestionSupervisor

    def start(self) -> None:
        self.supervisor.reconcile()
        self.auto_trigger.evaluate()

    async def shutdown(self) -> None:
        self.auto_trigger.close()
        await self.supervisor.shutdown()

    def clear(self) -> None:
        self.store.clear()
        self.trace.reset()


def trace_connector_events(registry: ConnectorRegistry, trace: TraceRecorder) -> Callable[[], None]:
    """Record connect and disconnect transitions as INGESTION trace entries."""
    connected = {item.connector_id: item.connected for item in registry.list_connectors()}

    def _on_change(state: ConnectorState) -> None:
        was_connected = connected.get(state.connector_id, False)
        connected[state.connector_id] = state.connected
        if state.connected and not was_connected:
            if state.polls_live:
                message = f"System: {state.name} OAuth Successful. Connected to real API."
            else:
                message = f"System: Connected {state.connector_id.value} account: {state.account}"
            trace.record(PipelineStage.INGESTION, message, TraceStep.RESULT)
        elif was_connected and not state.connected:
            trace.record(
                PipelineStage.INGESTION,
                f"System: Disconnected {state.name} connector.",
                TraceStep.ACTION,
            )

    return registry.subscribe(_on_change)


def build_runtime(
    settings: Settings,
    *,
    gmail_client: GmailClient | None = None,
    rng: random.Random | None = None,
) -> OpsRuntime:
    store = InMemoryTaskStore()
    trace = TraceRecorder()
    registry = ConnectorRegistry()
    trace_connector_events(registry, trace)
    selector = BackendSelector(settings)
    orchestrator = PipelineOrchestrator(
        store=store,
        trace=trace,
        selector=selector,
        settings=settings,
    )
    auto_trigger = AutoTriggerRule(store=store, registry=registry, orchestrator=orchestrator)
    simulator = TrafficSimulator(
        store=store,
        registry=registry,
        trace=trace,
        interval_s=settings.simulation_interval_s,
        probability=settings.simulation_probability,
        rng=rng,
    )
    poller = MailboxPoller(
        store=store,
        registry=registry,
        trace=trace,
        client=gmail_client or GmailClient(),
        interval_s=settings.gmail_poll_interval_s,
        max_results=settings.gmail_max_results,
    )
    supervisor = IngestionSupervisor(
        registry=registry,
        simulator=simulator,
        poller=poller,
        simulation_enabled=settings.simulation_enabled,
    )
    return OpsRuntime(
        settings=settings,
        store=store,
        trace=trace,
        registry=registry,
        selector=selector,
        orchestrator=orchestrator,
        auto_trigger=auto_trigger,
        simulator=simulator,
        poller=poller,
        supervisor=supervisor,
    )
