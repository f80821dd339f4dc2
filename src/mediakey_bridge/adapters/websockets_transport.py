import logging

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from mediakey_bridge.ports.transport import ConnectionClosedError, TransportError

logger = logging.getLogger(__name__)


def _describe_close(exc: ConnectionClosed) -> str:
    if exc.rcvd is not None:
        return f"code={exc.rcvd.code} reason={exc.rcvd.reason!r}"
    return "no close frame received"


class WebsocketsConnection:
    def __init__(self, websocket: ClientConnection) -> None:
        self._websocket = websocket

    async def send(self, text: str) -> None:
        try:
            await self._websocket.send(text)
        except ConnectionClosed as exc:
            raise ConnectionClosedError(_describe_close(exc)) from exc
        except (OSError, WebSocketException) as exc:
            raise TransportError(str(exc)) from exc

    async def ping(self) -> None:
        # Pong handling is left to websockets; the waiter is not awaited
        try:
            await self._websocket.ping()
        except ConnectionClosed as exc:
            raise ConnectionClosedError(_describe_close(exc)) from exc
        except (OSError, WebSocketException) as exc:
            raise TransportError(str(exc)) from exc

    async def recv(self) -> str | bytes:
        try:
            return await self._websocket.recv()
        except ConnectionClosed as exc:
            raise ConnectionClosedError(_describe_close(exc)) from exc
        except (OSError, WebSocketException) as exc:
            raise TransportError(str(exc)) from exc

    async def close(self) -> None:
        await self._websocket.close()


class WebsocketsTransport:
    def __init__(self, open_timeout: float | None = None) -> None:
        self._open_timeout = open_timeout

    async def connect(self, url: str) -> WebsocketsConnection:
        try:
            # Keepalive is disabled: the channel sends its own heartbeat pings
            websocket = await connect(
                url,
                ping_interval=None,
                open_timeout=self._open_timeout,
            )
        except (OSError, WebSocketException) as exc:
            raise TransportError(f"{exc.__class__.__name__}: {exc}") from exc
        logger.debug("WebSocket handshake with %s complete", url)
        return WebsocketsConnection(websocket)
