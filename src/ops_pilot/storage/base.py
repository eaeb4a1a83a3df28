"""Storage interface for the task lifecycle."""

from __future__ import annotations

from typing import Callable, Protocol

from ops_pilot.models import Task

TaskListener = Callable[[Task | None], None]


class TaskStorage(Protocol):
    def add(self, task: Task) -> Task: ...

    def get(self, task_id: str) -> Task | None: ...

    def contains(self, task_id: str) -> bool: ...

    def list_tasks(self) -> list[Task]: ...

    def replace(self, task: Task) -> Task: ...

    def clear(self) -> None: ...

    def subscribe(self, listener: TaskListener) -> Callable[[], None]: ...
