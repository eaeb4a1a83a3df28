from __future__ import annotations

import asyncio

import pytest

from ops_pilot.errors import BackendError
from ops_pilot.models import (
    Decision,
    OutputType,
    PipelineStage,
    TaskStatus,
    TaskType,
    TraceStep,
)
from ops_pilot.runtime import build_runtime
from support import ScriptedBackend, add_task, make_settings, use_backend


def _stages(runtime, step: TraceStep | None = None) -> list[PipelineStage]:
    return [
        entry.stage
        for entry in runtime.trace.entries()
        if step is None or entry.step == step
    ]


@pytest.mark.asyncio
async def test_simulation_run_produces_prd_for_feature_request(runtime) -> None:
    task = add_task(runtime, "We need a PRD for feature X, priority high")

    outcome = await runtime.orchestrator.submit(task.task_id)

    assert outcome.accepted is True
    assert outcome.backend_mode == "simulation"
    final = runtime.store.get(task.task_id)
    assert final.status == TaskStatus.COMPLETED
    assert final.task_type == TaskType.ACTION_ITEM
    assert final.summary
    assert final.output_type == OutputType.PRD
    assert "Simulated PRD" in final.output_content


@pytest.mark.asyncio
async def test_stages_run_in_order_and_trace_is_reset(runtime) -> None:
    task = add_task(runtime)
    assert _stages(runtime) == [PipelineStage.INGESTION]

    await runtime.orchestrator.submit(task.task_id)

    stages = _stages(runtime)
    assert PipelineStage.INGESTION not in stages
    first_seen = list(dict.fromkeys(stages))
    assert first_seen == [
        PipelineStage.CLASSIFIER,
        PipelineStage.RECALL,
        PipelineStage.DECISION,
        PipelineStage.EXECUTION,
    ]
    classifier_steps = [
        entry.step for entry in runtime.trace.entries() if entry.stage == PipelineStage.CLASSIFIER
    ]
    assert classifier_steps == [TraceStep.THINKING, TraceStep.RESULT]
    timestamps = [entry.timestamp for entry in runtime.trace.entries()]
    assert timestamps == sorted(timestamps)


@pytest.mark.asyncio
async def test_none_output_skips_generation(runtime) -> None:
    backend = ScriptedBackend(
        decision=Decision(
            action="Update Knowledge Base",
            reasoning="Informational.",
            output_type=OutputType.NONE,
        )
    )
    use_backend(runtime, backend)
    task = add_task(runtime)

    await runtime.orchestrator.submit(task.task_id)

    final = runtime.store.get(task.task_id)
    assert final.status == TaskStatus.COMPLETED
    assert final.output_content is None
    assert final.output_type == OutputType.NONE
    assert "execute" not in backend.calls
    execution_actions = [
        entry
        for entry in runtime.trace.entries()
        if entry.stage == PipelineStage.EXECUTION and entry.step == TraceStep.ACTION
    ]
    assert len(execution_actions) == 1
    assert "No content generation required" in execution_actions[0].message


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [TaskStatus.PROCESSING, TaskStatus.COMPLETED])
async def test_submit_is_noop_for_non_pending_task(runtime, status) -> None:
    task = add_task(runtime)
    runtime.store.replace(task.model_copy(update={"status": TaskStatus.PROCESSING}))
    if status == TaskStatus.COMPLETED:
        runtime.store.replace(runtime.store.get(task.task_id).model_copy(update={"status": status}))
    before_task = runtime.store.get(task.task_id)
    before_trace = runtime.trace.entries()

    outcome = await runtime.orchestrator.submit(task.task_id)

    assert outcome.accepted is False
    assert outcome.reason == "invalid_status"
    assert runtime.store.get(task.task_id) == before_task
    assert runtime.trace.entries() == before_trace


@pytest.mark.asyncio
async def test_submit_unknown_task_is_rejected(runtime) -> None:
    outcome = await runtime.orchestrator.submit("missing")

    assert outcome.accepted is False
    assert outcome.reason == "not_found"


@pytest.mark.asyncio
async def test_second_submission_while_busy_is_rejected(runtime) -> None:
    started = asyncio.Event()
    release = asyncio.Event()

    async def block() -> None:
        started.set()
        await release.wait()

    backend = ScriptedBackend()
    backend.classify_hook = block
    use_backend(runtime, backend)
    first = add_task(runtime, "First request")
    second = add_task(runtime, "Second request")

    running = asyncio.create_task(runtime.orchestrator.submit(first.task_id))
    await started.wait()
    assert runtime.orchestrator.is_idle is False

    trace_before = runtime.trace.entries()
    rejected = await runtime.orchestrator.submit(second.task_id)
    assert rejected.accepted is False
    assert rejected.reason == "busy"
    assert runtime.store.get(second.task_id).status == TaskStatus.PENDING
    assert runtime.trace.entries() == trace_before

    release.set()
    done = await running
    assert done.task.status == TaskStatus.COMPLETED
    assert runtime.orchestrator.is_idle is True


@pytest.mark.asyncio
async def test_classifier_backend_error_falls_back_to_defaults(runtime) -> None:
    def fail() -> None:
        raise BackendError("model unavailable")

    backend = ScriptedBackend()
    backend.classify_hook = fail
    use_backend(runtime, backend)
    task = add_task(runtime)

    await runtime.orchestrator.submit(task.task_id)

    final = runtime.store.get(task.task_id)
    assert final.status == TaskStatus.COMPLETED
    assert final.task_type == TaskType.UNKNOWN
    assert final.priority.value == "MEDIUM"
    assert final.summary == "classification failed"
    assert final.entities == []
    result = [
        entry
        for entry in runtime.trace.entries()
        if entry.stage == PipelineStage.CLASSIFIER and entry.step == TraceStep.RESULT
    ]
    assert result[0].data["fallback"] is True


@pytest.mark.asyncio
async def test_decision_backend_error_falls_back_to_manual_review(runtime) -> None:
    def fail() -> None:
        raise BackendError("schema mismatch")

    backend = ScriptedBackend()
    backend.decide_hook = fail
    use_backend(runtime, backend)
    task = add_task(runtime)

    await runtime.orchestrator.submit(task.task_id)

    final = runtime.store.get(task.task_id)
    assert final.status == TaskStatus.COMPLETED
    assert final.next_action == "Manual review required"
    assert final.output_type == OutputType.NONE
    assert final.output_content is None


@pytest.mark.asyncio
async def test_fault_during_decision_fails_run_and_keeps_classification(runtime) -> None:
    def explode() -> None:
        raise RuntimeError("forced fault")

    backend = ScriptedBackend()
    backend.decide_hook = explode
    use_backend(runtime, backend)
    task = add_task(runtime)

    outcome = await runtime.orchestrator.submit(task.task_id)

    assert outcome.accepted is True
    final = runtime.store.get(task.task_id)
    assert final.status == TaskStatus.FAILED
    assert final.task_type == TaskType.ACTION_ITEM
    assert final.summary == "Scripted summary"
    assert final.next_action is None
    results = [
        entry
        for entry in runtime.trace.entries()
        if entry.stage == PipelineStage.EXECUTION and entry.step == TraceStep.RESULT
    ]
    assert results == []
    failure = runtime.trace.entries()[-1]
    assert failure.stage == PipelineStage.DECISION
    assert failure.message == "Critical failure in processing chain"
    assert runtime.orchestrator.is_idle is True


@pytest.mark.asyncio
async def test_execution_backend_error_is_fatal(runtime) -> None:
    def fail() -> None:
        raise BackendError("generation failed")

    backend = ScriptedBackend()
    backend.execute_hook = fail
    use_backend(runtime, backend)
    task = add_task(runtime)

    await runtime.orchestrator.submit(task.task_id)

    final = runtime.store.get(task.task_id)
    assert final.status == TaskStatus.FAILED
    assert final.next_action == "Draft Email"
    assert final.output_content is None


@pytest.mark.asyncio
async def test_failed_task_can_be_retried_but_completed_cannot(runtime) -> None:
    backend = ScriptedBackend()
    calls = {"count": 0}

    def fail_once() -> None:
        calls["count"] += 1
        if calls["count"] == 1:
            raise RuntimeError("transient")

    backend.execute_hook = fail_once
    use_backend(runtime, backend)
    task = add_task(runtime)

    await runtime.orchestrator.submit(task.task_id)
    assert runtime.store.get(task.task_id).status == TaskStatus.FAILED

    assert (await runtime.orchestrator.submit(task.task_id)).reason == "invalid_status"

    retried = await runtime.orchestrator.retry(task.task_id)
    assert retried.accepted is True
    assert runtime.store.get(task.task_id).status == TaskStatus.COMPLETED
    assert runtime.store.get(task.task_id).output_content == "Generated artifact"

    assert (await runtime.orchestrator.retry(task.task_id)).reason == "invalid_status"
    assert (await runtime.orchestrator.submit(task.task_id)).reason == "invalid_status"


@pytest.mark.asyncio
async def test_hung_classifier_times_out_into_fallback() -> None:
    runtime = build_runtime(make_settings(backend_timeout_s=0.05))
    backend = ScriptedBackend()
    backend.classify_hook = lambda: asyncio.sleep(1.0)
    use_backend(runtime, backend)
    task = add_task(runtime)

    await runtime.orchestrator.submit(task.task_id)

    final = runtime.store.get(task.task_id)
    assert final.status == TaskStatus.COMPLETED
    assert final.summary == "classification failed"


@pytest.mark.asyncio
async def test_status_changes_only_follow_the_state_machine(runtime) -> None:
    seen: list[tuple[str, TaskStatus]] = []

    def record(task) -> None:
        if task is not None:
            seen.append((task.task_id, task.status))

    runtime.store.subscribe(record)
    ok = add_task(runtime, "We need a PRD for the billing feature")

    def explode() -> None:
        raise RuntimeError("boom")

    backend_fail = ScriptedBackend()
    backend_fail.decide_hook = explode

    await runtime.orchestrator.submit(ok.task_id)
    use_backend(runtime, backend_fail)
    bad = add_task(runtime, "Second task")
    await runtime.orchestrator.submit(bad.task_id)

    def transitions(task_id: str) -> list[TaskStatus]:
        statuses = [status for tid, status in seen if tid == task_id]
        return [status for i, status in enumerate(statuses) if i == 0 or statuses[i - 1] != status]

    assert transitions(ok.task_id) == [
        TaskStatus.PENDING,
        TaskStatus.PROCESSING,
        TaskStatus.COMPLETED,
    ]
    assert transitions(bad.task_id) == [
        TaskStatus.PENDING,
        TaskStatus.PROCESSING,
        TaskStatus.FAILED,
    ]
