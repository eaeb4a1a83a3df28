"""Pydantic models shared across ingestion, pipeline, storage and API."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SourceChannel(str, Enum):
    SLACK = "SLACK"
    GMAIL = "GMAIL"
    NOTION = "NOTION"

    @classmethod
    def parse(cls, value: "str | SourceChannel") -> "SourceChannel":
        """Accept either case (`"slack"`, `"SLACK"`) or an enum member."""
        if isinstance(value, SourceChannel):
            return value
        return cls(str(value).strip().upper())


class TaskStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class TaskType(str, Enum):
    ACTION_ITEM = "ACTION_ITEM"
    QUESTION = "QUESTION"
    INFORMATIONAL = "INFORMATIONAL"
    UNKNOWN = "UNKNOWN"


class TaskPriority(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class OutputType(str, Enum):
    EMAIL = "EMAIL"
    PRD = "PRD"
    SUMMARY = "SUMMARY"
    NONE = "NONE"


class PipelineStage(str, Enum):
    INGESTION = "INGESTION"
    CLASSIFIER = "CLASSIFIER"
    RECALL = "RECALL"
    DECISION = "DECISION"
    EXECUTION = "EXECUTION"


class TraceStep(str, Enum):
    THINKING = "THINKING"
    ACTION = "ACTION"
    RESULT = "RESULT"


# FAILED -> PROCESSING is the manual retry path.
ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.PROCESSING}),
    TaskStatus.PROCESSING: frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.FAILED: frozenset({TaskStatus.PROCESSING}),
}


def can_transition(current: TaskStatus, target: TaskStatus) -> bool:
    if current == target:
        return True
    return target in ALLOWED_TRANSITIONS[current]


class Classification(BaseModel):
    """Classifier stage contract."""

    model_config = ConfigDict(extra="ignore")

    type: TaskType
    priority: TaskPriority
    summary: str
    entities: list[str] = Field(default_factory=list)


class Decision(BaseModel):
    """Decision stage contract."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    action: str
    reasoning: str
    output_type: OutputType = Field(alias="outputType")


class Task(BaseModel):
    """One inbound signal and everything the pipeline derived from it."""

    model_config = ConfigDict(frozen=True)

    task_id: str
    source: SourceChannel
    raw_content: str
    sender: str
    created_at: datetime
    status: TaskStatus = TaskStatus.PENDING

    task_type: TaskType | None = None
    priority: TaskPriority | None = None
    summary: str | None = None
    entities: list[str] | None = None

    next_action: str | None = None
    reasoning: str | None = None
    output_type: OutputType | None = None

    output_content: str | None = None


# Fields owned by pipeline stages; once set they must stay set.
STAGE_FIELDS = (
    "task_type",
    "priority",
    "summary",
    "entities",
    "next_action",
    "reasoning",
    "output_type",
    "output_content",
)


class TraceEntry(BaseModel):
    """One observable step of a pipeline run."""

    model_config = ConfigDict(frozen=True)

    entry_id: str
    timestamp: datetime
    stage: PipelineStage
    message: str
    step: TraceStep
    data: dict[str, Any] | None = None


class ConnectorState(BaseModel):
    """Configuration of one external signal source."""

    model_config = ConfigDict(frozen=True)

    connector_id: SourceChannel
    name: str
    description: str = ""
    connected: bool = False
    auto_trigger: bool = False
    last_sync: datetime | None = None
    account: str | None = None
    credential: str | None = Field(default=None, exclude=True, repr=False)

    @model_validator(mode="after")
    def _auto_trigger_needs_connection(self) -> "ConnectorState":
        if self.auto_trigger and not self.connected:
            raise ValueError("auto_trigger can only be enabled on a connected source")
        return self

    @property
    def polls_live(self) -> bool:
        return self.connected and bool(self.credential)
