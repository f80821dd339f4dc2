from typing import Protocol


class TransportError(Exception):
    pass


class ConnectionClosedError(TransportError):
    pass


class ConnectionPort(Protocol):
    async def send(self, text: str) -> None: ...
    async def ping(self) -> None: ...
    async def recv(self) -> str | bytes: ...
    async def close(self) -> None: ...


class TransportPort(Protocol):
    async def connect(self, url: str) -> ConnectionPort: ...
