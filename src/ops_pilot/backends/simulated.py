"""Deterministic offline backend.

Mirrors the live backend's contract exactly so the pipeline cannot tell the
two apart. Answers are keyword rules over the message text; each call sleeps
for a fixed delay to mimic network latency.
"""

from __future__ import annotations

import asyncio
import re
from functools import lru_cache

from ops_pilot.backends.base import DecisionRequest, ExecutionRequest
from ops_pilot.models import Classification, Decision, OutputType, TaskPriority, TaskType

QUESTION_STARTS = (
    "who",
    "what",
    "when",
    "where",
    "why",
    "how",
    "do",
    "does",
    "did",
    "is",
    "are",
    "can we",
    "could",
)
ACTION_HINTS = (
    "need",
    "please",
    "can you",
    "could you",
    "fix",
    "check",
    "review",
    "action required",
    "approve",
    "prepare",
    "update",
    "rollback",
    "investigate",
)
HIGH_PRIORITY_HINTS = (
    "urgent",
    "critical",
    "asap",
    "high",
    "outage",
    "spiking",
    "breaking",
    "blocker",
    "immediately",
)
LOW_PRIORITY_HINTS = ("fyi", "whenever", "no rush", "low priority", "nice to have")
DOCUMENT_HINTS = ("prd", "spec", "feature", "document", "one-pager", "requirements", "roadmap")
STOPWORDS = {
    "The",
    "We",
    "Our",
    "Hey",
    "Hi",
    "Can",
    "Could",
    "Did",
    "Do",
    "Does",
    "I",
    "It",
    "Is",
    "Need",
    "Please",
    "Priority",
    "Subject",
    "This",
}


class SimulatedReasoningBackend:
    """Offline backend used when no credential is configured."""

    name = "simulation"

    def __init__(self, *, delay_s: float = 0.6) -> None:
        self.delay_s = max(0.0, delay_s)

    async def classify(self, raw_content: str, sender: str) -> Classification:
        await self._pause()
        task_type = classify_type(raw_content)
        return Classification(
            type=task_type,
            priority=classify_priority(raw_content),
            summary=summarize(raw_content, sender=sender),
            entities=extract_entities(raw_content),
        )

    async def decide(self, request: DecisionRequest) -> Decision:
        await self._pause()
        lowered = request.raw_content.lower()
        if _contains_any(lowered, DOCUMENT_HINTS):
            return Decision(
                action="Generate PRD",
                reasoning="The request asks for a document or feature specification.",
                output_type=OutputType.PRD,
            )
        if request.type in {TaskType.ACTION_ITEM, TaskType.QUESTION}:
            return Decision(
                action="Draft Email",
                reasoning=f"The {request.type.value.lower()} from {request.sender} needs a reply.",
                output_type=OutputType.EMAIL,
            )
        if request.type == TaskType.INFORMATIONAL:
            return Decision(
                action="Update Knowledge Base",
                reasoning="Informational message; no artifact is required.",
                output_type=OutputType.NONE,
            )
        return Decision(
            action="Summarize for review",
            reasoning="Intent is unclear; a digest lets a human decide.",
            output_type=OutputType.SUMMARY,
        )

    async def execute(self, request: ExecutionRequest) -> str:
        await self._pause()
        if request.output_type == OutputType.PRD:
            return (
                "# Simulated PRD\n\n"
                "## Problem\n"
                f"{request.summary}\n\n"
                "## Goals\n"
                "- Deliver the requested capability\n"
                "- Keep the rollout measurable\n\n"
                "## User Stories\n"
                f"- As {request.sender}, I want this request addressed so the team can ship.\n\n"
                "## Source Request\n"
                f"> {request.raw_content}\n"
            )
        if request.output_type == OutputType.EMAIL:
            return (
                "# Simulated Email Draft\n\n"
                f"Hi {request.sender},\n\n"
                f"Thanks for reaching out regarding: {request.summary}\n"
                "We are looking into it and will follow up shortly.\n\n"
                "Best regards,\nOpsPilot"
            )
        bullets = _sentences(request.raw_content)[:5]
        body = "\n".join(f"- {sentence}" for sentence in bullets) or f"- {request.summary}"
        return f"# Simulated Summary\n\n{body}\n"

    async def _pause(self) -> None:
        if self.delay_s > 0:
            await asyncio.sleep(self.delay_s)


def classify_type(text: str) -> TaskType:
    lowered = text.lower().strip()
    if "?" in lowered or _starts_with_any(lowered, QUESTION_STARTS):
        return TaskType.QUESTION
    if _contains_any(lowered, ACTION_HINTS):
        return TaskType.ACTION_ITEM
    if lowered:
        return TaskType.INFORMATIONAL
    return TaskType.UNKNOWN


def classify_priority(text: str) -> TaskPriority:
    lowered = text.lower()
    if _contains_any(lowered, HIGH_PRIORITY_HINTS):
        return TaskPriority.HIGH
    if _contains_any(lowered, LOW_PRIORITY_HINTS):
        return TaskPriority.LOW
    return TaskPriority.MEDIUM


def summarize(text: str, *, sender: str, max_words: int = 20) -> str:
    words = text.split()
    if not words:
        return f"Empty message from {sender}."
    summary = " ".join(words[:max_words]).rstrip(".,;:")
    if len(words) > max_words:
        summary += "..."
    return f"{sender}: {summary}"


def extract_entities(text: str) -> list[str]:
    matches = re.findall(r"\b[A-Z][a-zA-Z0-9_#-]*\b", text)
    seen: set[str] = set()
    output: list[str] = []
    for match in matches:
        if match in STOPWORDS or match in seen:
            continue
        seen.add(match)
        output.append(match)
    return output


def _sentences(text: str) -> list[str]:
    return [part.strip() for part in re.split(r"(?<=[.!?])\s+|\n+", text) if part.strip()]


def _contains_any(text: str, hints: tuple[str, ...]) -> bool:
    return _hint_pattern(hints).search(text) is not None


def _starts_with_any(text: str, hints: tuple[str, ...]) -> bool:
    return _hint_pattern(hints).match(text) is not None


@lru_cache(maxsize=None)
def _hint_pattern(hints: tuple[str, ...]) -> re.Pattern[str]:
    # Whole words only: "spec" must not match "inspect".
    alternatives = "|".join(re.escape(hint) for hint in hints)
    return re.compile(rf"\b(?:{alternatives})\b")
