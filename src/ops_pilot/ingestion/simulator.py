"""Randomized simulated traffic from connected sources."""

from __future__ import annotations

import logging
import random

from ops_pilot.connectors import ConnectorRegistry
from ops_pilot.ingestion.dispatch import build_task, new_task_id
from ops_pilot.ingestion.scheduling import PeriodicJob
from ops_pilot.models import PipelineStage, SourceChannel, Task, TaskPriority, TraceStep
from ops_pilot.storage.base import TaskStorage
from ops_pilot.trace import TraceRecorder

logger = logging.getLogger(__name__)

MESSAGE_TEMPLATES: dict[SourceChannel, tuple[tuple[str, str], ...]] = {
    SourceChannel.SLACK: (
        ("Dave (DevOps)", "The production database CPU is spiking at 95%. Can you check the logs?"),
        ("Sarah (Product)", "We need a one-pager for the Q3 roadmap feature set. Priority is high."),
        ("Mike (Sales)", "Client X is asking if we support SSO integration yet. Do we have documentation?"),
        ("AlertBot", "[CRITICAL] Payment gateway latency > 500ms."),
        ("Jasmine (Frontend)", "The new dashboard layout is breaking on mobile. Need a quick fix or rollback decision."),
        ("Greg (Security)", "Did we approve the new dependency for the auth service? I'm seeing a flag."),
    ),
    SourceChannel.GMAIL: (
        ("client@enterprise.com", "Subject: Urgent: Invoice #342 discrepancy. Please review attached PDF."),
        ("recruiting@agency.com", "Subject: Candidate profiles for the Senior Engineer role."),
        ("support@cloud.com", "Subject: Maintenance Window Scheduled for Oct 12th."),
        ("legal@partner.com", "Subject: Terms of Service Update - Action Required."),
    ),
    SourceChannel.NOTION: (
        ("Notion Bot", "New page in Product Workspace: Onboarding flow requirements draft."),
        ("Notion Bot", "Meeting notes added: Weekly platform sync, decisions on caching layer."),
    ),
}

HIGH_PRIORITY_WEIGHT = 0.4


class TrafficSimulator(PeriodicJob):
    """Emits canned signals while at least one connector is active for simulation."""

    name = "traffic_simulator"

    def __init__(
        self,
        *,
        store: TaskStorage,
        registry: ConnectorRegistry,
        trace: TraceRecorder,
        interval_s: float = 3.5,
        probability: float = 0.5,
        rng: random.Random | None = None,
    ) -> None:
        super().__init__(interval_s=interval_s)
        self.store = store
        self.registry = registry
        self.trace = trace
        self.probability = probability
        self.rng = rng or random.Random()

    async def run_once(self) -> None:
        self.tick()

    def tick(self) -> Task | None:
        sources = [
            source for source in self.registry.simulation_sources() if MESSAGE_TEMPLATES.get(source)
        ]
        if not sources:
            return None
        if self.rng.random() >= self.probability:
            return None

        source = self.rng.choice(sources)
        sender, content = self.rng.choice(MESSAGE_TEMPLATES[source])
        priority = TaskPriority.HIGH if self.rng.random() < HIGH_PRIORITY_WEIGHT else TaskPriority.MEDIUM
        task = build_task(
            task_id=new_task_id("stream"),
            source=source,
            content=content,
            sender=sender,
            priority=priority,
        )
        self.store.add(task)
        logger.info("ingestion event=simulated task_id=%s source=%s", task.task_id, source.value)
        self.trace.record(
            PipelineStage.INGESTION,
            f"Stream Event: New signal from {source.value}",
            TraceStep.ACTION,
            {"id": task.task_id},
        )
        return task
