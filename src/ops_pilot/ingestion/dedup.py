"""Identifier-based admission for polled signals."""

from __future__ import annotations

from typing import Iterable

from ops_pilot.models import Task
from ops_pilot.storage.base import TaskStorage


def derive_task_id(prefix: str, remote_id: str) -> str:
    """Stable local id for a remote item, so repeated polls map to the same task."""
    return f"{prefix}-{remote_id}"


def admit_unseen(store: TaskStorage, candidates: Iterable[Task]) -> list[Task]:
    """Add candidates whose id the store has not seen; return the ones admitted."""
    admitted: list[Task] = []
    for task in candidates:
        if store.contains(task.task_id):
            continue
        store.add(task)
        admitted.append(task)
    return admitted
