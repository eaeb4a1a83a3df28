"""Task storage backends."""

from ops_pilot.storage.base import TaskListener, TaskStorage
from ops_pilot.storage.memory import InMemoryTaskStore

__all__ = [
    "InMemoryTaskStore",
    "TaskListener",
    "TaskStorage",
]
