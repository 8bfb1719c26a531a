"""Fixed-interval background tasks for cache and conversation sweeps"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Union

logger = logging.getLogger(__name__)

SweepFn = Callable[[], Union[int, Awaitable[int]]]


class PeriodicTask:
    """
    Runs a sweep function every `interval` seconds on the event loop.

    The sweep runs between request handlers on the same loop, so it never
    interleaves with a synchronous cache or store mutation.
    """

    def __init__(
        self,
        name: str,
        func: SweepFn,
        interval: float,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.name = name
        self.func = func
        self.interval = interval
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        """Schedule the loop on the running event loop"""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=f"sweep:{self.name}")
        logger.debug("Started periodic task %s every %ss", self.name, self.interval)

    async def stop(self):
        """Cancel the loop and wait for it to finish"""
        if not self._task:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.debug("Stopped periodic task %s", self.name)

    async def run_once(self) -> int:
        result = self.func()
        if asyncio.iscoroutine(result):
            result = await result
        self.runs += 1
        if result:
            logger.info("%s sweep removed %d entries", self.name, result)
        return result or 0

    async def _loop(self):
        while True:
            await self._sleep(self.interval)
            try:
                await self.run_once()
            except Exception:
                logger.exception("Periodic task %s failed", self.name)
