"""Owned, cancelable periodic jobs on the running event loop."""

from __future__ import annotations

import asyncio
import contextlib
import logging

logger = logging.getLogger(__name__)


class PeriodicJob:
    name = "periodic_job"

    def __init__(self, *, interval_s: float, run_immediately: bool = False) -> None:
        self.interval_s = interval_s
        self.run_immediately = run_immediately
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._loop(), name=self.name)
        logger.info("job event=start name=%s interval_s=%s", self.name, self.interval_s)

    def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            logger.info("job event=stop name=%s", self.name)

    async def aclose(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def run_once(self) -> None:
        raise NotImplementedError

    async def _loop(self) -> None:
        if self.run_immediately:
            await self._guarded_run()
        while True:
            await asyncio.sleep(self.interval_s)
            await self._guarded_run()

    async def _guarded_run(self) -> None:
        try:
            await self.run_once()
        except asyncio.CancelledError:
            raise
        except Exception:  # noqa: BLE001
            logger.exception("job event=error name=%s", self.name)
