import asyncio
from collections.abc import Callable
from dataclasses import dataclass

import pytest
import pytest_asyncio

from mediakey_bridge.domain.actions import Action
from mediakey_bridge.domain.channel import MessagingChannel
from mediakey_bridge.ports.transport import ConnectionClosedError, TransportError


WS_URL = "ws://localhost:8000/ws"
RECONNECT_DELAY = 2.0
HEARTBEAT_INTERVAL = 5.0


async def settle(rounds: int = 10) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeConnection:
    def __init__(self) -> None:
        self.sent: list[str] = []
        self.pings = 0
        self.closed = False
        self.ping_error: Exception | None = None
        self.send_error: Exception | None = None
        self._inbound: asyncio.Queue[str | bytes | Exception] = asyncio.Queue()

    async def send(self, text: str) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(text)

    async def ping(self) -> None:
        if self.ping_error is not None:
            raise self.ping_error
        self.pings += 1

    async def recv(self) -> str | bytes:
        item = await self._inbound.get()
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True

    def feed(self, data: str | bytes) -> None:
        self._inbound.put_nowait(data)

    def drop(self, reason: str = "code=1001 reason='going away'") -> None:
        self._inbound.put_nowait(ConnectionClosedError(reason))

    def fail_recv(self, exc: Exception) -> None:
        self._inbound.put_nowait(exc)


class FakeTransport:
    """Connect attempts stay pending until the test accepts or refuses them."""

    def __init__(self, auto_accept: bool = False) -> None:
        self.auto_accept = auto_accept
        self.urls: list[str] = []
        self.connections: list[FakeConnection] = []
        self._pending: list[asyncio.Future] = []

    @property
    def attempts(self) -> int:
        return len(self.urls)

    @property
    def pending(self) -> int:
        return sum(1 for f in self._pending if not f.done())

    async def connect(self, url: str) -> FakeConnection:
        self.urls.append(url)
        if self.auto_accept:
            return self._new_connection()
        future = asyncio.get_running_loop().create_future()
        self._pending.append(future)
        return await future

    def accept(self) -> FakeConnection:
        future = self._next_pending()
        connection = self._new_connection()
        future.set_result(connection)
        return connection

    def refuse(self, exc: Exception | None = None) -> None:
        future = self._next_pending()
        future.set_exception(exc or TransportError("ConnectionRefusedError: [Errno 111] Connect call failed"))

    def _next_pending(self) -> asyncio.Future:
        for future in self._pending:
            if not future.done():
                return future
        raise AssertionError("no pending connect attempt")

    def _new_connection(self) -> FakeConnection:
        connection = FakeConnection()
        self.connections.append(connection)
        return connection


@dataclass
class ManualTimer:
    deadline: float
    callback: Callable[[], None]
    interval: float | None = None
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    def __init__(self) -> None:
        self.now = 0.0
        self._timers: list[ManualTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(deadline=self.now + delay, callback=callback)
        self._timers.append(timer)
        return timer

    def call_every(self, interval: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(deadline=self.now + interval, callback=callback, interval=interval)
        self._timers.append(timer)
        return timer

    def pending(self) -> list[ManualTimer]:
        return [t for t in self._timers if not t.cancelled]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [t for t in self.pending() if t.deadline <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.deadline)
            self.now = timer.deadline
            if timer.interval is None:
                self._timers.remove(timer)
            else:
                timer.deadline += timer.interval
            timer.callback()
        self.now = target


class FakeKeySource:
    def __init__(self) -> None:
        self.handler: Callable[[Action], None] | None = None
        self.stopped = False

    def start(self, handler: Callable[[Action], None]) -> None:
        self.handler = handler

    def stop(self) -> None:
        self.stopped = True

    def press(self, action: Action) -> None:
        if self.handler is not None:
            self.handler(action)


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest_asyncio.fixture
async def channel(fake_transport, scheduler):
    channel = MessagingChannel(
        url=WS_URL,
        transport=fake_transport,
        scheduler=scheduler,
        reconnect_delay_seconds=RECONNECT_DELAY,
        heartbeat_interval_seconds=HEARTBEAT_INTERVAL,
        connect_timeout_seconds=0,
    )
    yield channel
    await channel.stop()


async def open_channel(channel: MessagingChannel, transport: FakeTransport) -> FakeConnection:
    await channel.start()
    await settle()
    connection = transport.accept()
    await settle()
    return connection
