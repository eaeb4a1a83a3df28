"""Finalize node: close the run as COMPLETED."""

from __future__ import annotations

from langchain_core.runnables import RunnableConfig

from ops_pilot.graph.state import PipelineState, run_context
from ops_pilot.models import PipelineStage, TaskStatus, TraceStep


async def run(state: PipelineState, config: RunnableConfig) -> PipelineState:
    ctx = run_context(config)
    ctx.enter(PipelineStage.RECALL)
    ctx.merge(status=TaskStatus.COMPLETED)
    ctx.trace.record(
        PipelineStage.RECALL, "Task lifecycle completed. State updated.", TraceStep.RESULT
    )
    return {}
