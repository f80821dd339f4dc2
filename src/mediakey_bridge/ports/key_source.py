from collections.abc import Callable
from typing import Protocol

from mediakey_bridge.domain.actions import Action

ActionHandler = Callable[[Action], None]


class ActionSourcePort(Protocol):
    def start(self, handler: ActionHandler) -> None: ...
    def stop(self) -> None: ...
