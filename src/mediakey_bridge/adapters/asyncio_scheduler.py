import asyncio
import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)


class LoopTimer:
    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        delay: float,
        callback: Callable[[], None],
        repeat: bool = False,
    ) -> None:
        self._loop = loop
        self._delay = delay
        self._callback = callback
        self._repeat = repeat
        self._cancelled = False
        self._handle: asyncio.TimerHandle = loop.call_later(delay, self._fire)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
        self._handle.cancel()

    def _fire(self) -> None:
        if self._cancelled:
            return
        # Periodic timers re-arm before the callback runs
        if self._repeat:
            self._handle = self._loop.call_later(self._delay, self._fire)
        try:
            self._callback()
        except Exception:
            logger.exception("Scheduled callback failed")


class AsyncioScheduler:
    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> LoopTimer:
        return LoopTimer(self._get_loop(), delay, callback)

    def call_every(self, interval: float, callback: Callable[[], None]) -> LoopTimer:
        return LoopTimer(self._get_loop(), interval, callback, repeat=True)
