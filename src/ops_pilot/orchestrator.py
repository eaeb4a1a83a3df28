"""Pipeline orchestrator: admission control and the run lifecycle around the graph."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable

from ops_pilot.backends.selector import BackendSelector
from ops_pilot.config.settings import Settings
from ops_pilot.graph.state import RunContext, initial_state
from ops_pilot.graph.workflow import build_graph
from ops_pilot.models import Task, TaskStatus, TraceStep
from ops_pilot.storage.base import TaskStorage
from ops_pilot.trace import TraceRecorder

logger = logging.getLogger(__name__)

IdleListener = Callable[[], None]


class RunSlot:
    """Single-slot semaphore guarding the one run allowed system-wide."""

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def try_acquire(self) -> bool:
        return self._lock.acquire(blocking=False)

    def release(self) -> None:
        self._lock.release()

    @property
    def busy(self) -> bool:
        return self._lock.locked()


@dataclass(frozen=True)
class SubmitOutcome:
    task_id: str
    accepted: bool
    reason: str | None = None
    task: Task | None = None
    backend_mode: str | None = None


class PipelineOrchestrator:
    """Drives one task at a time through classify, recall, decide and execute.

    Rejected submissions (unknown task, wrong status, slot busy) leave the
    store and the trace untouched. Callers re-submit later; nothing is queued.
    """

    def __init__(
        self,
        *,
        store: TaskStorage,
        trace: TraceRecorder,
        selector: BackendSelector,
        settings: Settings,
        graph: Any | None = None,
    ) -> None:
        self.store = store
        self.trace = trace
        self.selector = selector
        self.settings = settings
        self.slot = RunSlot()
        self._graph = graph or build_graph()
        self._idle_listeners: list[IdleListener] = []

    @property
    def is_idle(self) -> bool:
        return not self.slot.busy

    def add_idle_listener(self, listener: IdleListener) -> None:
        self._idle_listeners.append(listener)

    async def submit(self, task_id: str) -> SubmitOutcome:
        return await self._start(task_id, allowed=frozenset({TaskStatus.PENDING}))

    async def retry(self, task_id: str) -> SubmitOutcome:
        """Manual retry: re-run a FAILED task as if it were still pending."""
        return await self._start(task_id, allowed=frozenset({TaskStatus.FAILED}))

    async def _start(self, task_id: str, *, allowed: frozenset[TaskStatus]) -> SubmitOutcome:
        task = self.store.get(task_id)
        if task is None:
            return SubmitOutcome(task_id=task_id, accepted=False, reason="not_found")
        if task.status not in allowed:
            logger.debug(
                "pipeline_run event=rejected task_id=%s reason=invalid_status status=%s",
                task_id,
                task.status.value,
            )
            return SubmitOutcome(
                task_id=task_id, accepted=False, reason="invalid_status", task=task
            )
        if not self.slot.try_acquire():
            logger.info("pipeline_run event=rejected task_id=%s reason=busy", task_id)
            return SubmitOutcome(task_id=task_id, accepted=False, reason="busy", task=task)

        try:
            return await self._run(task)
        finally:
            self.slot.release()
            self._notify_idle()

    async def _run(self, task: Task) -> SubmitOutcome:
        task_id = task.task_id
        self.store.replace(task.model_copy(update={"status": TaskStatus.PROCESSING}))
        self.trace.reset()

        selection = self.selector.select()
        logger.info(
            "pipeline_run event=start task_id=%s backend=%s reason=%s",
            task_id,
            selection.mode,
            selection.reason,
        )
        context = RunContext(
            task_id=task_id,
            store=self.store,
            trace=self.trace,
            backend=selection.backend,
            backend_timeout_s=self.settings.backend_timeout_s,
            recall_delay_s=self.settings.recall_delay_s,
        )

        try:
            await self._graph.ainvoke(
                initial_state(task_id),
                config={"configurable": {"run": context}},
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception(
                "pipeline_run event=failed task_id=%s stage=%s",
                task_id,
                context.current_stage.value,
            )
            self.trace.record(
                context.current_stage,
                "Critical failure in processing chain",
                TraceStep.RESULT,
                {"error": str(exc), "error_type": type(exc).__name__},
            )
            final = self._mark_failed(task_id)
            return SubmitOutcome(
                task_id=task_id, accepted=True, task=final, backend_mode=selection.mode
            )

        final = self.store.get(task_id)
        logger.info(
            "pipeline_run event=completed task_id=%s backend=%s output_type=%s",
            task_id,
            selection.mode,
            final.output_type.value if final and final.output_type else None,
        )
        return SubmitOutcome(task_id=task_id, accepted=True, task=final, backend_mode=selection.mode)

    def _mark_failed(self, task_id: str) -> Task | None:
        current = self.store.get(task_id)
        if current is None:
            return None
        if current.status != TaskStatus.PROCESSING:
            return current
        return self.store.replace(current.model_copy(update={"status": TaskStatus.FAILED}))

    def _notify_idle(self) -> None:
        for listener in list(self._idle_listeners):
            listener()
