"""Execution node: generate the decided artifact, or record that none is needed."""

from __future__ import annotations

from langchain_core.runnables import RunnableConfig

from ops_pilot.backends.base import ExecutionRequest
from ops_pilot.graph.state import PipelineState, run_context
from ops_pilot.models import OutputType, PipelineStage, TraceStep

PREVIEW_CHARS = 100


async def run(state: PipelineState, config: RunnableConfig) -> PipelineState:
    ctx = run_context(config)
    ctx.enter(PipelineStage.EXECUTION)
    task = ctx.load_task()
    decision = state["decision"]

    ctx.trace.record(
        PipelineStage.EXECUTION, f"Executing action: {decision.action}...", TraceStep.ACTION
    )
    request = ExecutionRequest(
        output_type=decision.output_type,
        raw_content=task.raw_content,
        summary=task.summary or "",
        sender=task.sender,
    )
    output = await ctx.call_backend(ctx.backend.execute(request))
    ctx.merge(output_content=output, output_type=decision.output_type)
    ctx.trace.record(
        PipelineStage.EXECUTION,
        "Content generated successfully",
        TraceStep.RESULT,
        {"output_type": decision.output_type.value, "preview": _preview(output)},
    )
    return {"output_content": output}


async def skip(state: PipelineState, config: RunnableConfig) -> PipelineState:
    ctx = run_context(config)
    ctx.enter(PipelineStage.EXECUTION)
    ctx.trace.record(
        PipelineStage.EXECUTION,
        "No content generation required. Updating records.",
        TraceStep.ACTION,
        {"output_type": OutputType.NONE.value},
    )
    return {"output_content": None}


def _preview(text: str) -> str:
    if len(text) <= PREVIEW_CHARS:
        return text
    return text[:PREVIEW_CHARS] + "..."
