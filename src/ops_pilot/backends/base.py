"""Capability interface shared by the live and simulated reasoning backends."""

from __future__ import annotations

from typing import Protocol

from pydantic import BaseModel

from ops_pilot.models import Classification, Decision, OutputType, TaskPriority, TaskType


class DecisionRequest(BaseModel):
    summary: str
    type: TaskType
    priority: TaskPriority
    sender: str
    raw_content: str


class ExecutionRequest(BaseModel):
    output_type: OutputType
    raw_content: str
    summary: str
    sender: str


class ReasoningBackend(Protocol):
    name: str

    async def classify(self, raw_content: str, sender: str) -> Classification: ...

    async def decide(self, request: DecisionRequest) -> Decision: ...

    async def execute(self, request: ExecutionRequest) -> str: ...


FALLBACK_CLASSIFICATION = Classification(
    type=TaskType.UNKNOWN,
    priority=TaskPriority.MEDIUM,
    summary="classification failed",
    entities=[],
)

FALLBACK_DECISION = Decision(
    action="Manual review required",
    reasoning="AI processing failed.",
    output_type=OutputType.NONE,
)
