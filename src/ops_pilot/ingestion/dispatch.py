"""Manual dispatch entry point and task construction shared by all producers."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from uuid import uuid4

from ops_pilot.models import PipelineStage, SourceChannel, Task, TaskPriority, TraceStep
from ops_pilot.storage.base import TaskStorage
from ops_pilot.trace import TraceRecorder

logger = logging.getLogger(__name__)

DEFAULT_SENDERS: dict[SourceChannel, str] = {
    SourceChannel.SLACK: "Demo User",
    SourceChannel.GMAIL: "demo@example.com",
    SourceChannel.NOTION: "Notion Bot",
}


def new_task_id(prefix: str) -> str:
    return f"{prefix}-{uuid4().hex[:12]}"


def build_task(
    *,
    task_id: str,
    source: SourceChannel,
    content: str,
    sender: str,
    created_at: datetime | None = None,
    priority: TaskPriority | None = None,
) -> Task:
    return Task(
        task_id=task_id,
        source=source,
        raw_content=content,
        sender=sender,
        created_at=created_at or datetime.now(UTC),
        priority=priority,
    )


def dispatch_signal(
    store: TaskStorage,
    trace: TraceRecorder,
    source: str | SourceChannel,
    content: str,
    *,
    sender: str | None = None,
) -> Task | None:
    """Create a PENDING task from caller-supplied text; blank text is ignored."""
    if not content or not content.strip():
        return None

    channel = SourceChannel.parse(source)
    task = build_task(
        task_id=new_task_id("manual"),
        source=channel,
        content=content,
        sender=sender or DEFAULT_SENDERS[channel],
    )
    store.add(task)
    logger.info("ingestion event=manual_dispatch task_id=%s source=%s", task.task_id, channel.value)
    trace.record(
        PipelineStage.INGESTION,
        f"Manual Dispatch: Received custom signal from {channel.value}",
        TraceStep.ACTION,
        {"task_id": task.task_id, "content": content},
    )
    return task
