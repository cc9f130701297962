"""Periodic background jobs tied to the application lifespan."""
from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, Optional

LOGGER = logging.getLogger(__name__)


class PeriodicTask:
    """Run ``func`` every ``interval`` seconds until stopped.

    ``func`` may be sync or async. Failures are logged and the loop carries on.
    """

    def __init__(self, name: str, interval: float, func: Callable[[], Any]) -> None:
        self.name = name
        self.interval = interval
        self._func = func
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)
        LOGGER.info("started background task", extra={"detail": self.name})

    async def run_once(self) -> Any:
        result = self._func()
        if inspect.isawaitable(result):
            result = await result
        return result

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.run_once()
            except Exception:  # noqa: BLE001
                LOGGER.exception("background task failed", extra={"detail": self.name})

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
