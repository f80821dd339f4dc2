import logging
import threading
import webbrowser
from collections.abc import Callable
from dataclasses import dataclass

from mediakey_bridge.domain.actions import Action, UnknownActionError
from mediakey_bridge.domain.channel import MessagingChannel
from mediakey_bridge.domain.events import ChannelEvent, Connected, Disconnected, MessageReceived
from mediakey_bridge.ports.key_source import ActionSourcePort

logger = logging.getLogger(__name__)

SLOTS = (1, 2, 3)


@dataclass
class PresentationState:
    connected: bool = False
    selected_slot: int = 1
    last_inbound: str | None = None
    actions_sent: int = 0


class PresentationController:
    """Application state behind the status surface (menu, icon, control socket).

    Subscribes to channel events instead of the channel reaching into UI
    objects.
    """

    def __init__(
        self,
        channel: MessagingChannel,
        page_url: str,
        open_url: Callable[[str], object] = webbrowser.open,
        on_quit: Callable[[], None] | None = None,
    ) -> None:
        self._channel = channel
        self._page_url = page_url
        self._open_url = open_url
        self._on_quit = on_quit
        self._state = PresentationState()
        # send() also runs on the key source thread
        self._counter_lock = threading.Lock()
        channel.subscribe(self.handle_event)

    @property
    def state(self) -> PresentationState:
        return self._state

    @property
    def actions_sent(self) -> int:
        with self._counter_lock:
            return self._state.actions_sent

    def handle_event(self, event: ChannelEvent) -> None:
        if isinstance(event, Connected):
            self._state.connected = True
        elif isinstance(event, Disconnected):
            self._state.connected = False
        elif isinstance(event, MessageReceived):
            data = event.data
            self._state.last_inbound = data if isinstance(data, str) else f"<{len(data)} bytes>"

    def attach(self, key_source: ActionSourcePort) -> None:
        key_source.start(self.send)

    def send(self, tag: Action | str) -> bool:
        try:
            action = Action.parse(tag)
        except UnknownActionError:
            logger.warning("Ignoring unknown action %r", tag)
            return False
        sent = self._channel.send(action)
        if sent:
            with self._counter_lock:
                self._state.actions_sent += 1
        return sent

    def open_page(self) -> str:
        logger.info("Opening %s", self._page_url)
        self._open_url(self._page_url)
        return self._page_url

    def select_slot(self, slot: int) -> int:
        if slot not in SLOTS:
            raise ValueError(f"Slot must be one of {SLOTS}, got {slot}")
        self._state.selected_slot = slot
        logger.info("Selected slot %d", slot)
        return slot

    def quit(self) -> bool:
        if self._on_quit is None:
            return False
        logger.info("Quit requested")
        self._on_quit()
        return True

    def status(self) -> dict:
        return {
            "connection": self._channel.state.name,
            "connected": self._state.connected,
            "url": self._channel.url,
            "slot": self._state.selected_slot,
            "actions_sent": self.actions_sent,
            "last_inbound": self._state.last_inbound,
        }

    def execute(self, action: str, payload: dict | None = None) -> dict:
        payload = payload or {}
        if action == "send":
            tag = str(payload.get("action", ""))
            if tag not in Action.tags():
                return {"status": "error", "error": f"unknown action {tag!r}"}
            return {"status": "ok", "action": tag, "sent": self.send(tag)}
        if action == "open-page":
            return {"status": "ok", "url": self.open_page()}
        if action == "select":
            try:
                slot = self.select_slot(int(payload.get("slot", 0)))
            except (TypeError, ValueError) as exc:
                return {"status": "error", "error": str(exc)}
            return {"status": "ok", "slot": slot}
        if action == "status":
            return {"status": "ok", **self.status()}
        if action == "quit":
            if not self.quit():
                return {"status": "error", "error": "quit not supported"}
            return {"status": "ok", "quitting": True}
        return {"status": "error", "error": f"unknown command {action!r}"}
