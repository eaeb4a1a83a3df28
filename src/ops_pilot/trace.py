"""Append-only recorder for pipeline activity."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any, Callable
from uuid import uuid4

from ops_pilot.models import PipelineStage, TraceEntry, TraceStep

logger = logging.getLogger(__name__)

TraceListener = Callable[[TraceEntry], None]


class TraceRecorder:
    """Ordered log of the current run's steps.

    The orchestrator writes here and never reads back: nothing in the
    pipeline branches on trace content.
    """

    def __init__(self) -> None:
        self._entries: list[TraceEntry] = []
        self._listeners: list[TraceListener] = []

    def record(
        self,
        stage: PipelineStage,
        message: str,
        step: TraceStep,
        data: dict[str, Any] | None = None,
    ) -> TraceEntry:
        entry = TraceEntry(
            entry_id=uuid4().hex[:12],
            timestamp=datetime.now(UTC),
            stage=stage,
            message=message,
            step=step,
            data=data,
        )
        self._entries.append(entry)
        logger.info("trace stage=%s step=%s message=%s", stage.value, step.value, message)
        for listener in list(self._listeners):
            listener(entry)
        return entry

    def reset(self) -> None:
        self._entries.clear()

    def entries(self) -> tuple[TraceEntry, ...]:
        return tuple(self._entries)

    def subscribe(self, listener: TraceListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def __len__(self) -> int:
        return len(self._entries)
