from collections.abc import Callable
from typing import Protocol


class ScheduledTask(Protocol):
    def cancel(self) -> None: ...

    @property
    def cancelled(self) -> bool: ...


class SchedulerPort(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledTask: ...
    def call_every(self, interval: float, callback: Callable[[], None]) -> ScheduledTask: ...
