"""Recall node: context check against prior history.

Currently a fixed-latency check that never finds a blocking constraint. It
stays a separate node so stateful lookups can slot in here.
"""

from __future__ import annotations

import asyncio

from langchain_core.runnables import RunnableConfig

from ops_pilot.graph.state import PipelineState, run_context
from ops_pilot.models import PipelineStage, TraceStep


async def run(state: PipelineState, config: RunnableConfig) -> PipelineState:
    ctx = run_context(config)
    ctx.enter(PipelineStage.RECALL)

    ctx.trace.record(
        PipelineStage.RECALL, "Checking context and previous constraints...", TraceStep.THINKING
    )
    if ctx.recall_delay_s > 0:
        await asyncio.sleep(ctx.recall_delay_s)
    ctx.trace.record(
        PipelineStage.RECALL,
        "No conflicting blocking constraints found.",
        TraceStep.RESULT,
        {"blocking": False},
    )
    return {}
