"""Dashboard figures derived from the task store and connector registry."""

from __future__ import annotations

from pydantic import BaseModel, Field

from ops_pilot.connectors import ConnectorRegistry
from ops_pilot.models import TaskStatus
from ops_pilot.storage.base import TaskStorage


class DashboardMetrics(BaseModel):
    total_tasks: int = 0
    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0
    success_rate_pct: int = 0
    active_connectors: int = 0
    actions_executed: int = 0
    by_source: dict[str, int] = Field(default_factory=dict)


def compute_metrics(store: TaskStorage, registry: ConnectorRegistry) -> DashboardMetrics:
    tasks = store.list_tasks()
    counts = {status: 0 for status in TaskStatus}
    by_source: dict[str, int] = {}
    actions_executed = 0
    for task in tasks:
        counts[task.status] += 1
        by_source[task.source.value] = by_source.get(task.source.value, 0) + 1
        if task.output_content:
            actions_executed += 1

    total = len(tasks)
    success_rate = round(counts[TaskStatus.COMPLETED] / total * 100) if total else 0
    return DashboardMetrics(
        total_tasks=total,
        pending=counts[TaskStatus.PENDING],
        processing=counts[TaskStatus.PROCESSING],
        completed=counts[TaskStatus.COMPLETED],
        failed=counts[TaskStatus.FAILED],
        success_rate_pct=success_rate,
        active_connectors=registry.active_count(),
        actions_executed=actions_executed,
        by_source=by_source,
    )
