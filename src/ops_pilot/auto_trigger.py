"""Submits newly arrived tasks whose connector has auto-trigger enabled."""

from __future__ import annotations

import asyncio
import logging

from ops_pilot.connectors import ConnectorRegistry
from ops_pilot.models import ConnectorState, Task, TaskStatus
from ops_pilot.orchestrator import PipelineOrchestrator
from ops_pilot.storage.base import TaskStorage

logger = logging.getLogger(__name__)


class AutoTriggerRule:
    """Single-flight gate on top of the orchestrator's own admission checks.

    Evaluated after every store mutation, connector change and whenever the
    orchestrator goes idle. At most one submission of its own is in flight.
    """

    def __init__(
        self,
        *,
        store: TaskStorage,
        registry: ConnectorRegistry,
        orchestrator: PipelineOrchestrator,
    ) -> None:
        self.store = store
        self.registry = registry
        self.orchestrator = orchestrator
        self._inflight: asyncio.Task | None = None
        self._unsubscribers = [
            store.subscribe(self._on_task_change),
            registry.subscribe(self._on_connector_change),
        ]
        orchestrator.add_idle_listener(self.evaluate)

    @property
    def inflight(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def next_candidate(self) -> Task | None:
        for task in self.store.list_tasks():
            if task.status == TaskStatus.PENDING and self.registry.auto_trigger_enabled(task.source):
                return task
        return None

    def evaluate(self) -> asyncio.Task | None:
        if self.inflight or not self.orchestrator.is_idle:
            return None
        candidate = self.next_candidate()
        if candidate is None:
            return None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("auto_trigger event=skipped reason=no_running_loop")
            return None

        logger.info(
            "auto_trigger event=submit task_id=%s source=%s",
            candidate.task_id,
            candidate.source.value,
        )
        self._inflight = loop.create_task(self._submit(candidate.task_id))
        return self._inflight

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    async def _submit(self, task_id: str) -> None:
        try:
            outcome = await self.orchestrator.submit(task_id)
            if not outcome.accepted:
                logger.info(
                    "auto_trigger event=rejected task_id=%s reason=%s", task_id, outcome.reason
                )
        finally:
            self._inflight = None
            self.evaluate()

    def _on_task_change(self, _task: Task | None) -> None:
        self.evaluate()

    def _on_connector_change(self, _state: ConnectorState) -> None:
        self.evaluate()
