import asyncio
from dataclasses import dataclass, field
from typing import Protocol, AsyncIterator


@dataclass(frozen=True)
class ControlCommand:
    action: str
    payload: dict | None = None


@dataclass
class ControlRequest:
    command: ControlCommand
    reply: asyncio.Future = field(default_factory=lambda: asyncio.get_running_loop().create_future())

    def respond(self, data: dict) -> None:
        if not self.reply.done():
            self.reply.set_result(data)


class ControlPort(Protocol):
    async def start(self) -> None: ...
    async def stop(self) -> None: ...
    def requests(self) -> AsyncIterator[ControlRequest]: ...
