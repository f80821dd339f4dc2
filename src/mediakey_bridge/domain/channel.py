import asyncio
import logging
import threading
from collections.abc import Callable, Coroutine

import janus

from mediakey_bridge.domain.actions import Action, Message, UnknownActionError, encode_message
from mediakey_bridge.domain.events import ChannelEvent, Connected, Disconnected, MessageReceived
from mediakey_bridge.domain.state import ConnectionState, Effect, LifecycleEvent, transition
from mediakey_bridge.ports.scheduler import ScheduledTask, SchedulerPort
from mediakey_bridge.ports.transport import ConnectionClosedError, ConnectionPort, TransportError, TransportPort

logger = logging.getLogger(__name__)

RECONNECT_DELAY_SECONDS = 2.0
HEARTBEAT_INTERVAL_SECONDS = 5.0
CONNECT_TIMEOUT_SECONDS = 10.0
STOP_DRAIN_TIMEOUT_SECONDS = 1.0

ChannelListener = Callable[[ChannelEvent], None]
OutboundFrame = tuple[int, ConnectionPort, str]


class MessagingChannel:
    """Self-healing WebSocket client channel.

    Owns exactly one current connection. Lifecycle transitions come from the
    pure ``transition`` table in ``domain.state``; this class executes their
    effects (open/close transport, timers, listen loop, notifications).

    ``send`` is the only method that may be called from outside the event
    loop thread. Everything else runs on the loop passed to ``start``.
    """

    def __init__(
        self,
        url: str,
        transport: TransportPort,
        scheduler: SchedulerPort,
        reconnect_delay_seconds: float = RECONNECT_DELAY_SECONDS,
        heartbeat_interval_seconds: float = HEARTBEAT_INTERVAL_SECONDS,
        connect_timeout_seconds: float = CONNECT_TIMEOUT_SECONDS,
    ) -> None:
        self._url = url
        self._transport = transport
        self._scheduler = scheduler
        self._reconnect_delay = reconnect_delay_seconds
        self._heartbeat_interval = heartbeat_interval_seconds
        self._connect_timeout = connect_timeout_seconds

        # Guards _state, _connection and _generation; send() reads them off-loop
        self._lock = threading.Lock()
        self._state = ConnectionState.IDLE
        self._connection: ConnectionPort | None = None
        self._generation = 0

        self._listeners: list[ChannelListener] = []
        self._outbox: janus.Queue[OutboundFrame] | None = None
        self._sender_task: asyncio.Task | None = None
        self._connect_task: asyncio.Task | None = None
        self._listen_task: asyncio.Task | None = None
        self._background: set[asyncio.Task] = set()
        self._closing: set[asyncio.Task] = set()
        self._heartbeat: ScheduledTask | None = None
        self._reconnect_timer: ScheduledTask | None = None
        self._stopped = False

    @property
    def url(self) -> str:
        return self._url

    @property
    def state(self) -> ConnectionState:
        with self._lock:
            return self._state

    @property
    def connection(self) -> ConnectionPort | None:
        with self._lock:
            return self._connection

    @property
    def is_open(self) -> bool:
        return self.state is ConnectionState.OPEN

    def subscribe(self, listener: ChannelListener) -> None:
        self._listeners.append(listener)

    async def start(self) -> None:
        if self._outbox is not None:
            return
        self._outbox = janus.Queue()
        self._sender_task = asyncio.create_task(self._sender_loop())
        self._heartbeat = self._scheduler.call_every(self._heartbeat_interval, self._on_heartbeat)
        logger.info("Messaging channel started (url=%s)", self._url)
        self.connect()

    async def stop(self) -> None:
        self._stopped = True
        for timer in (self._heartbeat, self._reconnect_timer):
            if timer is not None:
                timer.cancel()
        self._heartbeat = None
        self._reconnect_timer = None

        try:
            await asyncio.wait_for(self.drain(), timeout=STOP_DRAIN_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            logger.warning("Dropping unsent frames on shutdown")

        tasks = [t for t in (self._connect_task, self._listen_task, self._sender_task) if t]
        tasks.extend(self._background)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        # Connections dropped by earlier transitions still get closed
        await asyncio.gather(*self._closing, return_exceptions=True)

        with self._lock:
            connection = self._connection
            self._connection = None
            self._state = ConnectionState.CLOSED
        if connection is not None:
            await self._close_quietly(connection)

        if self._outbox is not None:
            self._outbox.close()
            await self._outbox.wait_closed()
            self._outbox = None
        logger.info("Messaging channel stopped")

    def connect(self) -> bool:
        return self._dispatch(LifecycleEvent.CONNECT_REQUESTED)

    def send(self, action: Action | str) -> bool:
        try:
            frame = encode_message(Message(action=Action.parse(action)))
        except (UnknownActionError, TypeError, ValueError) as exc:
            logger.debug("Dropping unserializable action %r: %s", action, exc)
            return False

        with self._lock:
            if self._state is not ConnectionState.OPEN or self._connection is None:
                logger.debug("Not connected, dropping %s", frame)
                return False
            item = (self._generation, self._connection, frame)

        outbox = self._outbox
        if outbox is None:
            return False
        try:
            outbox.sync_q.put_nowait(item)
        except janus.SyncQueueShutDown:
            logger.debug("Channel stopped, dropping %s", frame)
            return False
        logger.info("Send: %s", frame)
        return True

    async def drain(self) -> None:
        """Wait until every frame handed over by ``send`` has been written or dropped.

        ``stop`` calls this (bounded by a timeout) so key presses accepted just
        before shutdown still reach the server.
        """
        if self._outbox is not None:
            await self._outbox.async_q.join()

    def _dispatch(
        self,
        event: LifecycleEvent,
        generation: int | None = None,
        connection: ConnectionPort | None = None,
        reason: str = "",
    ) -> bool:
        if self._stopped:
            return False

        with self._lock:
            if generation is not None and generation != self._generation:
                logger.debug("Ignoring %s from superseded connection #%d", event.name, generation)
                return False
            step = transition(self._state, event)
            if step is None:
                logger.debug("Ignoring %s in state %s", event.name, self._state.name)
                return False
            previous = self._state
            self._state = step.target
            dropped = None
            if Effect.OPEN_TRANSPORT in step.effects:
                self._generation += 1
            if step.target is ConnectionState.OPEN:
                self._connection = connection
            if Effect.CLOSE_TRANSPORT in step.effects:
                dropped = self._connection
                self._connection = None
            current = self._generation

        logger.info("Connection: %s -> %s (#%d)", previous.name, step.target.name, current)

        for effect in step.effects:
            if effect is Effect.OPEN_TRANSPORT:
                self._connect_task = asyncio.create_task(self._open(current))
            elif effect is Effect.CLOSE_TRANSPORT:
                listen_task = self._listen_task
                if listen_task is not None and listen_task is not asyncio.current_task():
                    listen_task.cancel()
                if dropped is not None:
                    self._spawn(self._close_quietly(dropped), self._closing)
            elif effect is Effect.START_LISTENING:
                self._listen_task = asyncio.create_task(self._listen(connection, current))
            elif effect is Effect.SCHEDULE_RECONNECT:
                self._schedule_reconnect()
            elif effect is Effect.NOTIFY_CONNECTED:
                self._publish(Connected(url=self._url))
            elif effect is Effect.NOTIFY_DISCONNECTED:
                self._publish(Disconnected(reason=reason))
        return True

    async def _open(self, generation: int) -> None:
        try:
            if self._connect_timeout > 0:
                connection = await asyncio.wait_for(
                    self._transport.connect(self._url), timeout=self._connect_timeout
                )
            else:
                connection = await self._transport.connect(self._url)
        except asyncio.TimeoutError:
            logger.warning("Handshake with %s timed out after %.1fs", self._url, self._connect_timeout)
            self._dispatch(LifecycleEvent.HANDSHAKE_FAILED, generation)
            return
        except TransportError as exc:
            logger.warning("Connection to %s failed: %s", self._url, exc)
            self._dispatch(LifecycleEvent.HANDSHAKE_FAILED, generation)
            return
        except Exception:
            logger.exception("Unexpected error connecting to %s", self._url)
            self._dispatch(LifecycleEvent.HANDSHAKE_FAILED, generation)
            return

        if not self._dispatch(LifecycleEvent.HANDSHAKE_SUCCEEDED, generation, connection=connection):
            await self._close_quietly(connection)

    async def _listen(self, connection: ConnectionPort, generation: int) -> None:
        reason = ""
        while True:
            try:
                data = await connection.recv()
            except ConnectionClosedError as exc:
                reason = str(exc) or "closed"
                logger.info("Connection closed: %s", reason)
                break
            except TransportError as exc:
                reason = str(exc) or exc.__class__.__name__
                logger.warning("Receive failed: %s", reason)
                break
            except Exception as exc:
                reason = exc.__class__.__name__
                logger.exception("Unexpected receive error")
                break

            if isinstance(data, bytes):
                logger.info("Received binary message: %d bytes", len(data))
            else:
                logger.info("Received text message: %s", data)
            self._publish(MessageReceived(data=data))

        self._dispatch(LifecycleEvent.LINK_LOST, generation, reason=reason)

    async def _sender_loop(self) -> None:
        outbox = self._outbox
        if outbox is None:
            return
        while True:
            try:
                generation, connection, frame = await outbox.async_q.get()
            except janus.AsyncQueueShutDown:
                break
            try:
                if self._is_current(generation):
                    await connection.send(frame)
                else:
                    logger.debug("Connection #%d superseded, dropping %s", generation, frame)
            except ConnectionClosedError as exc:
                logger.warning("Send failed, connection closed: %s", exc)
                self._dispatch(LifecycleEvent.LINK_LOST, generation, reason=str(exc))
            except TransportError as exc:
                logger.warning("Send failed: %s", exc)
            except Exception:
                logger.exception("Unexpected send error")
            finally:
                outbox.async_q.task_done()

    def _on_heartbeat(self) -> None:
        with self._lock:
            if self._state is not ConnectionState.OPEN or self._connection is None:
                return
            connection = self._connection
        self._spawn(self._ping(connection), self._background)

    async def _ping(self, connection: ConnectionPort) -> None:
        try:
            await connection.ping()
        except TransportError as exc:
            logger.warning("Ping failed: %s", exc)
        except Exception:
            logger.exception("Unexpected ping error")

    def _schedule_reconnect(self) -> None:
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
        logger.info("Reconnecting in %.1fs", self._reconnect_delay)
        self._reconnect_timer = self._scheduler.call_later(self._reconnect_delay, self._on_reconnect_due)

    def _on_reconnect_due(self) -> None:
        self._reconnect_timer = None
        self._dispatch(LifecycleEvent.RECONNECT_DUE)

    def _is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation and self._state is ConnectionState.OPEN

    def _publish(self, event: ChannelEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Channel listener failed on %s", type(event).__name__)

    def _spawn(self, coro: Coroutine, tasks: set[asyncio.Task]) -> None:
        task = asyncio.create_task(coro)
        tasks.add(task)
        task.add_done_callback(tasks.discard)

    async def _close_quietly(self, connection: ConnectionPort) -> None:
        try:
            await connection.close()
        except Exception:
            logger.debug("Closing superseded connection failed", exc_info=True)
