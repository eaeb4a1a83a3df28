from __future__ import annotations

import asyncio

import pytest

from ops_pilot.models import TaskStatus
from support import ScriptedBackend, add_task, use_backend


async def _drain(runtime, timeout_s: float = 2.0) -> None:
    async def wait() -> None:
        while runtime.auto_trigger.inflight or not runtime.orchestrator.is_idle:
            await asyncio.sleep(0.01)

    await asyncio.wait_for(wait(), timeout=timeout_s)


class CountingBackend(ScriptedBackend):
    def __init__(self) -> None:
        super().__init__()
        self.active = 0
        self.max_active = 0
        self.classify_hook = self._enter
        self.execute_hook = self._leave

    async def _enter(self) -> None:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        await asyncio.sleep(0.01)

    def _leave(self) -> None:
        self.active -= 1


@pytest.mark.asyncio
async def test_pending_tasks_run_one_at_a_time(runtime) -> None:
    backend = CountingBackend()
    use_backend(runtime, backend)
    runtime.registry.connect("slack", account="ops")
    runtime.registry.set_auto_trigger("slack", True)

    tasks = [add_task(runtime, f"Please handle request {index}") for index in range(3)]
    assert runtime.auto_trigger.inflight is True

    await _drain(runtime)

    assert [runtime.store.get(task.task_id).status for task in tasks] == [TaskStatus.COMPLETED] * 3
    assert backend.max_active == 1
    assert backend.calls.count("classify") == 3


@pytest.mark.asyncio
async def test_enabling_auto_trigger_picks_up_existing_backlog(runtime) -> None:
    use_backend(runtime, ScriptedBackend())
    runtime.registry.connect("notion", account="workspace")
    task = add_task(runtime, "Review the onboarding draft", source="NOTION")
    assert runtime.auto_trigger.inflight is False

    runtime.registry.set_auto_trigger("notion", True)
    await _drain(runtime)

    assert runtime.store.get(task.task_id).status == TaskStatus.COMPLETED


@pytest.mark.asyncio
async def test_newest_pending_task_is_chosen_first(runtime) -> None:
    use_backend(runtime, ScriptedBackend())
    runtime.registry.connect("slack", account="ops")
    older = add_task(runtime, "Older request")
    newer = add_task(runtime, "Newer request")
    started: list[str] = []

    def record(task) -> None:
        if task is not None and task.status == TaskStatus.PROCESSING and task.task_id not in started:
            started.append(task.task_id)

    runtime.store.subscribe(record)
    runtime.registry.set_auto_trigger("slack", True)
    await _drain(runtime)

    assert started == [newer.task_id, older.task_id]


@pytest.mark.asyncio
async def test_tasks_from_other_sources_are_left_alone(runtime) -> None:
    use_backend(runtime, ScriptedBackend())
    runtime.registry.connect("slack", account="ops")
    runtime.registry.connect("gmail", account="me@example.com")
    runtime.registry.set_auto_trigger("slack", True)

    mail = add_task(runtime, "Invoice attached", source="GMAIL")
    chat = add_task(runtime, "Please check the deploy")
    await _drain(runtime)

    assert runtime.store.get(chat.task_id).status == TaskStatus.COMPLETED
    assert runtime.store.get(mail.task_id).status == TaskStatus.PENDING


@pytest.mark.asyncio
async def test_waits_for_manual_run_to_finish(runtime) -> None:
    release = asyncio.Event()
    backend = ScriptedBackend()
    backend.classify_hook = release.wait
    use_backend(runtime, backend)

    manual = add_task(runtime, "Manual run")
    running = asyncio.create_task(runtime.orchestrator.submit(manual.task_id))
    await asyncio.sleep(0.01)
    assert runtime.orchestrator.is_idle is False

    runtime.registry.connect("slack", account="ops")
    runtime.registry.set_auto_trigger("slack", True)
    queued = add_task(runtime, "Arrived during the manual run")
    assert runtime.auto_trigger.inflight is False

    release.set()
    await running
    await _drain(runtime)

    assert runtime.store.get(queued.task_id).status == TaskStatus.COMPLETED


@pytest.mark.asyncio
async def test_closed_rule_stops_reacting(runtime) -> None:
    use_backend(runtime, ScriptedBackend())
    runtime.registry.connect("slack", account="ops")
    runtime.registry.set_auto_trigger("slack", True)
    runtime.auto_trigger.close()

    task = add_task(runtime)

    assert runtime.auto_trigger.inflight is False
    assert runtime.store.get(task.task_id).status == TaskStatus.PENDING
