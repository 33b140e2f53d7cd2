import asyncio
import inspect
from typing import Any, Callable, Optional

import structlog

from .clock import CivilClock


log = structlog.get_logger(__name__)


class MidnightResetScheduler:
    """
    Runs a reset callable shortly after every civil midnight.
    A failing run is logged and the next midnight is still scheduled.
    """

    def __init__(
        self,
        clock: CivilClock,
        reset: Callable[[], Any],
        buffer_seconds: float = 1.0,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ) -> None:
        self.clock = clock
        self.reset = reset
        self.buffer_seconds = buffer_seconds
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def next_delay(self) -> float:
        return self.clock.seconds_until_midnight() + self.buffer_seconds

    async def run_once(self) -> bool:
        try:
            result = self.reset()
            if inspect.isawaitable(result):
                result = await result
        except Exception:
            log.exception("midnight_reset_failed")
            return False
        log.info("midnight_reset_done", result=result)
        return True

    async def _loop(self) -> None:
        while True:
            delay = self.next_delay()
            log.info("midnight_reset_scheduled", in_seconds=round(delay, 1))
            await self._sleep(delay)
            await self.run_once()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
