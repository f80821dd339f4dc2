import asyncio
import json
import logging
import os
from collections.abc import AsyncIterator
from pathlib import Path

from mediakey_bridge.ports.control import ControlCommand, ControlRequest

logger = logging.getLogger(__name__)

DEFAULT_SOCKET_PATH = "/tmp/mediakey-bridge.sock"


class UnixSocketControlServer:
    def __init__(self, socket_path: str = DEFAULT_SOCKET_PATH, reply_timeout: float = 5.0) -> None:
        self._socket_path = socket_path
        self._reply_timeout = reply_timeout
        self._server: asyncio.Server | None = None
        self._request_queue: asyncio.Queue[ControlRequest] = asyncio.Queue()

    async def start(self) -> None:
        socket_file = Path(self._socket_path)
        if socket_file.exists():
            socket_file.unlink()

        self._server = await asyncio.start_unix_server(
            self._handle_client,
            path=self._socket_path,
        )
        os.chmod(self._socket_path, 0o600)
        logger.info("Control socket listening at %s", self._socket_path)

    async def stop(self) -> None:
        if self._server:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        socket_file = Path(self._socket_path)
        if socket_file.exists():
            socket_file.unlink()

    async def requests(self) -> AsyncIterator[ControlRequest]:
        while True:
            request = await self._request_queue.get()
            yield request

    async def _handle_client(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        try:
            raw = await asyncio.wait_for(reader.readline(), timeout=5.0)
            if not raw:
                return

            try:
                body = json.loads(raw.decode().strip())
            except json.JSONDecodeError:
                logger.warning("Invalid JSON from client")
                response = {"status": "error", "error": "invalid json"}
            else:
                response = await self._dispatch(body)

            writer.write((json.dumps(response) + "\n").encode())
            await writer.drain()
        except asyncio.TimeoutError:
            logger.warning("Client connection timed out")
        except Exception:
            logger.exception("Error handling control client")
        finally:
            writer.close()
            await writer.wait_closed()

    async def _dispatch(self, body: object) -> dict:
        if not isinstance(body, dict) or not isinstance(body.get("action"), str):
            return {"status": "error", "error": "missing action"}
        payload = body.get("payload")
        command = ControlCommand(
            action=body["action"],
            payload=payload if isinstance(payload, dict) else None,
        )
        request = ControlRequest(command=command)
        await self._request_queue.put(request)
        try:
            return await asyncio.wait_for(request.reply, timeout=self._reply_timeout)
        except asyncio.TimeoutError:
            logger.warning("No reply for control command %s", command.action)
            return {"status": "error", "error": "timeout", "action": command.action}


class UnixSocketControlClient:
    def __init__(self, socket_path: str = DEFAULT_SOCKET_PATH) -> None:
        self._socket_path = socket_path

    async def send_command(self, action: str, payload: dict | None = None) -> dict:
        reader, writer = await asyncio.open_unix_connection(self._socket_path)
        try:
            request = {"action": action}
            if payload:
                request["payload"] = payload
            writer.write((json.dumps(request) + "\n").encode())
            await writer.drain()

            raw = await asyncio.wait_for(reader.readline(), timeout=10.0)
            return json.loads(raw.decode().strip())
        finally:
            writer.close()
            await writer.wait_closed()
