"""Decision node: pick the next action and the artifact kind to produce."""

from __future__ import annotations

import logging

from langchain_core.runnables import RunnableConfig

from ops_pilot.backends.base import FALLBACK_DECISION, DecisionRequest
from ops_pilot.errors import BackendError
from ops_pilot.graph.state import PipelineState, run_context
from ops_pilot.models import PipelineStage, TaskPriority, TaskType, TraceStep

logger = logging.getLogger(__name__)


async def run(state: PipelineState, config: RunnableConfig) -> PipelineState:
    ctx = run_context(config)
    ctx.enter(PipelineStage.DECISION)
    task = ctx.load_task()

    request = DecisionRequest(
        summary=task.summary or "",
        type=task.task_type or TaskType.UNKNOWN,
        priority=task.priority or TaskPriority.MEDIUM,
        sender=task.sender,
        raw_content=task.raw_content,
    )

    ctx.trace.record(
        PipelineStage.DECISION, "Determining optimal execution path...", TraceStep.THINKING
    )
    try:
        decision = await ctx.call_backend(ctx.backend.decide(request))
        data = decision.model_dump(mode="json", by_alias=True)
    except BackendError as exc:
        logger.warning(
            "pipeline_stage stage=decision task_id=%s fallback=true reason=%s",
            task.task_id,
            exc,
        )
        decision = FALLBACK_DECISION
        data = {**decision.model_dump(mode="json", by_alias=True), "fallback": True, "error": str(exc)}

    ctx.trace.record(
        PipelineStage.DECISION, f"Decision made: {decision.action}", TraceStep.ACTION, data
    )
    ctx.merge(
        next_action=decision.action,
        reasoning=decision.reasoning,
        output_type=decision.output_type,
    )
    return {"decision": decision}
