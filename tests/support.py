"""Shared helpers for the test suite."""

from __future__ import annotations

import asyncio
from typing import Any, Callable

from ops_pilot.backends.base import DecisionRequest, ExecutionRequest
from ops_pilot.backends.selector import BackendSelection
from ops_pilot.config.settings import Settings
from ops_pilot.ingestion.dispatch import dispatch_signal
from ops_pilot.models import (
    Classification,
    Decision,
    OutputType,
    SourceChannel,
    Task,
    TaskPriority,
    TaskType,
)
from ops_pilot.runtime import OpsRuntime


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "openai_api_key": "",
        "simulated_stage_delay_s": 0.0,
        "recall_delay_s": 0.0,
        "simulation_enabled": False,
        "backend_timeout_s": 5.0,
    }
    values.update(overrides)
    return Settings(**values)


class ScriptedBackend:
    """Test double whose stage behavior is set per test."""

    name = "scripted"

    def __init__(
        self,
        *,
        classification: Classification | None = None,
        decision: Decision | None = None,
        output: str = "Generated artifact",
    ) -> None:
        self.classification = classification or Classification(
            type=TaskType.ACTION_ITEM,
            priority=TaskPriority.HIGH,
            summary="Scripted summary",
            entities=["Atlas"],
        )
        self.decision = decision or Decision(
            action="Draft Email",
            reasoning="Needs a reply.",
            output_type=OutputType.EMAIL,
        )
        self.output = output
        self.calls: list[str] = []
        self.classify_hook: Callable[[], Any] | None = None
        self.decide_hook: Callable[[], Any] | None = None
        self.execute_hook: Callable[[], Any] | None = None

    async def classify(self, raw_content: str, sender: str) -> Classification:
        self.calls.append("classify")
        await _run_hook(self.classify_hook)
        return self.classification

    async def decide(self, request: DecisionRequest) -> Decision:
        self.calls.append("decide")
        await _run_hook(self.decide_hook)
        return self.decision

    async def execute(self, request: ExecutionRequest) -> str:
        self.calls.append("execute")
        await _run_hook(self.execute_hook)
        return self.output


async def _run_hook(hook: Callable[[], Any] | None) -> None:
    if hook is None:
        return
    result = hook()
    if asyncio.iscoroutine(result):
        await result


def use_backend(runtime: OpsRuntime, backend: Any) -> None:
    runtime.selector.select = lambda: BackendSelection(  # type: ignore[method-assign]
        backend=backend, mode="scripted", reason="test"
    )


def add_task(
    runtime: OpsRuntime,
    content: str = "Please review the Atlas rollout plan.",
    source: str = "SLACK",
) -> Task:
    task = dispatch_signal(runtime.store, runtime.trace, SourceChannel.parse(source), content)
    assert task is not None
    return task


class EmptyMailbox:
    """Stands in for the Gmail client so API tests never reach the network."""

    async def fetch_recent(self, access_token: str, max_results: int = 8) -> list:
        return []
