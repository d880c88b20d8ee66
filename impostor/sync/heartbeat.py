"""Periodic timers: host heartbeat and join retries."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog

logger = structlog.get_logger(__name__)


class PeriodicTask:
    """Awaits ``callback`` every ``interval`` seconds until stopped.

    The first call happens one interval after :meth:`start`. Stopping from
    inside the callback is allowed. A callback that raises is logged and the
    task keeps its schedule.
    """

    def __init__(self, interval: float, callback: Callable[[], Awaitable[None]], name: str) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = interval
        self._callback = callback
        self._name = name
        self._task: asyncio.Task[None] | None = None
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self._name)

    def stop(self) -> None:
        if self._task is None:
            return
        task, self._task = self._task, None
        if task is not asyncio.current_task():
            task.cancel()

    async def _run(self) -> None:
        current = asyncio.current_task()
        while True:
            await asyncio.sleep(self.interval)
            if self._task is not current:
                return
            self.ticks += 1
            try:
                await self._callback()
            except Exception:
                logger.exception("periodic callback failed", task=self._name, tick=self.ticks)


class Heartbeat(PeriodicTask):
    """Re-broadcasts the host snapshot on a fixed period, changed or not."""

    def __init__(self, interval: float, broadcast: Callable[[], Awaitable[None]]) -> None:
        super().__init__(interval=interval, callback=self._beat, name="heartbeat")
        self._broadcast = broadcast

    async def _beat(self) -> None:
        logger.debug("heartbeat", tick=self.ticks)
        await self._broadcast()
