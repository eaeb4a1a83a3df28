"""Typed state contract and per-run context for the pipeline graph."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, TypedDict, TypeVar

from langchain_core.runnables import RunnableConfig

from ops_pilot.backends.base import ReasoningBackend
from ops_pilot.errors import BackendTimeoutError
from ops_pilot.models import Classification, Decision, PipelineStage, Task
from ops_pilot.storage.base import TaskStorage
from ops_pilot.trace import TraceRecorder

T = TypeVar("T")


class PipelineState(TypedDict, total=False):
    task_id: str
    classification: Classification
    decision: Decision
    output_content: str | None


def initial_state(task_id: str) -> PipelineState:
    return {
        "task_id": task_id,
        "output_content": None,
    }


@dataclass
class RunContext:
    """Collaborators for one run, handed to every node through the run config."""

    task_id: str
    store: TaskStorage
    trace: TraceRecorder
    backend: ReasoningBackend
    backend_timeout_s: float = 0.0
    recall_delay_s: float = 0.0
    current_stage: PipelineStage = PipelineStage.CLASSIFIER

    def enter(self, stage: PipelineStage) -> None:
        self.current_stage = stage

    def load_task(self) -> Task:
        task = self.store.get(self.task_id)
        if task is None:
            raise KeyError(f"Task {self.task_id} disappeared during the run")
        return task

    def merge(self, **fields: Any) -> Task:
        """Write stage results back as a whole-record replacement."""
        return self.store.replace(self.load_task().model_copy(update=fields))

    async def call_backend(self, awaitable: Awaitable[T]) -> T:
        if self.backend_timeout_s <= 0:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, timeout=self.backend_timeout_s)
        except asyncio.TimeoutError as exc:
            raise BackendTimeoutError(
                f"{self.current_stage.value} backend call exceeded {self.backend_timeout_s:.1f}s"
            ) from exc


def run_context(config: RunnableConfig) -> RunContext:
    configurable = config.get("configurable", {}) if config else {}
    context = configurable.get("run")
    if not isinstance(context, RunContext):
        raise RuntimeError("Pipeline node invoked without a run context")
    return context
