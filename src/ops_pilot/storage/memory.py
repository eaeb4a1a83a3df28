"""In-memory task store.

Writes are whole-record replacements: callers read the current record, build a
new one with ``model_copy(update=...)`` and hand it back to ``replace``. The
store checks every replacement against the task state machine and refuses to
clear fields a pipeline stage already populated.
"""

from __future__ import annotations

import logging
from typing import Callable

from ops_pilot.errors import DuplicateTaskError, FieldRegressionError, InvalidTransitionError
from ops_pilot.models import STAGE_FIELDS, Task, can_transition
from ops_pilot.storage.base import TaskListener

logger = logging.getLogger(__name__)


class InMemoryTaskStore:
    """Authoritative task collection for a single orchestrator process."""

    def __init__(self) -> None:
        self._tasks: dict[str, Task] = {}
        self._listeners: list[TaskListener] = []

    def add(self, task: Task) -> Task:
        if task.task_id in self._tasks:
            raise DuplicateTaskError(f"Task {task.task_id} already exists")
        self._tasks[task.task_id] = task
        logger.debug("task_store event=add task_id=%s source=%s", task.task_id, task.source.value)
        self._notify(task)
        return task

    def get(self, task_id: str) -> Task | None:
        return self._tasks.get(task_id)

    def contains(self, task_id: str) -> bool:
        return task_id in self._tasks

    def list_tasks(self) -> list[Task]:
        """Tasks newest first, the order an inbox shows them."""
        return list(reversed(self._tasks.values()))

    def replace(self, task: Task) -> Task:
        current = self._tasks.get(task.task_id)
        if current is None:
            raise KeyError(f"Task {task.task_id} does not exist")
        if not can_transition(current.status, task.status):
            raise InvalidTransitionError(
                f"Task {task.task_id} cannot move from {current.status.value} to {task.status.value}"
            )
        regressed = [
            name
            for name in STAGE_FIELDS
            if getattr(current, name) is not None and getattr(task, name) is None
        ]
        if regressed:
            raise FieldRegressionError(
                f"Task {task.task_id} replacement clears fields: {', '.join(regressed)}"
            )
        self._tasks[task.task_id] = task
        self._notify(task)
        return task

    def clear(self) -> None:
        self._tasks.clear()
        logger.info("task_store event=clear")
        self._notify(None)

    def subscribe(self, listener: TaskListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def __len__(self) -> int:
        return len(self._tasks)

    def _notify(self, task: Task | None) -> None:
        for listener in list(self._listeners):
            listener(task)
