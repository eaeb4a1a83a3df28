"""Classifier node: type, priority, summary and entities for the raw signal."""

from __future__ import annotations

import logging

from langchain_core.runnables import RunnableConfig

from ops_pilot.backends.base import FALLBACK_CLASSIFICATION
from ops_pilot.errors import BackendError
from ops_pilot.graph.state import PipelineState, run_context
from ops_pilot.models import PipelineStage, TraceStep

logger = logging.getLogger(__name__)


async def run(state: PipelineState, config: RunnableConfig) -> PipelineState:
    ctx = run_context(config)
    ctx.enter(PipelineStage.CLASSIFIER)
    task = ctx.load_task()

    ctx.trace.record(
        PipelineStage.CLASSIFIER, "Analyzing message intent and entities...", TraceStep.THINKING
    )
    try:
        classification = await ctx.call_backend(ctx.backend.classify(task.raw_content, task.sender))
        message = "Classification complete"
        data = classification.model_dump(mode="json")
    except BackendError as exc:
        logger.warning(
            "pipeline_stage stage=classifier task_id=%s fallback=true reason=%s",
            task.task_id,
            exc,
        )
        classification = FALLBACK_CLASSIFICATION
        message = "Classification failed; using safe defaults"
        data = {**classification.model_dump(mode="json"), "fallback": True, "error": str(exc)}

    ctx.trace.record(PipelineStage.CLASSIFIER, message, TraceStep.RESULT, data)
    ctx.merge(
        task_type=classification.type,
        priority=classification.priority,
        summary=classification.summary,
        entities=list(classification.entities),
    )
    return {"classification": classification}
