"""Reasoning backends and per-run selection."""

from ops_pilot.backends.base import (
    FALLBACK_CLASSIFICATION,
    FALLBACK_DECISION,
    DecisionRequest,
    ExecutionRequest,
    ReasoningBackend,
)
from ops_pilot.backends.llm import OpenAIReasoningBackend
from ops_pilot.backends.selector import BackendSelection, BackendSelector
from ops_pilot.backends.simulated import SimulatedReasoningBackend

__all__ = [
    "FALLBACK_CLASSIFICATION",
    "FALLBACK_DECISION",
    "BackendSelection",
    "BackendSelector",
    "DecisionRequest",
    "ExecutionRequest",
    "OpenAIReasoningBackend",
    "ReasoningBackend",
    "SimulatedReasoningBackend",
]
