import logging

from mediakey_bridge.domain.actions import action_for_key_name
from mediakey_bridge.ports.key_source import ActionHandler

logger = logging.getLogger(__name__)


class MediaKeyListener:
    """Global media key capture on pynput's listener thread.

    The handler runs on that thread, so it must be thread-safe and must not
    block (``PresentationController.send`` is both).
    """

    def __init__(self) -> None:
        self._listener = None
        self._handler: ActionHandler | None = None

    @property
    def running(self) -> bool:
        return self._listener is not None and self._listener.is_alive()

    def start(self, handler: ActionHandler) -> None:
        if self.running:
            logger.warning("Media key listener already running")
            return
        from pynput import keyboard

        self._handler = handler
        self._listener = keyboard.Listener(on_press=self._on_press)
        self._listener.daemon = True
        self._listener.start()
        logger.info("Media key listener started")

    def stop(self) -> None:
        if self._listener is not None:
            self._listener.stop()
            self._listener = None
            logger.info("Media key listener stopped")

    def _on_press(self, key) -> None:
        action = action_for_key_name(getattr(key, "name", None))
        if action is None or self._handler is None:
            return
        logger.debug("Media key: %s", action.value)
        try:
            self._handler(action)
        except Exception:
            logger.exception("Action handler failed for %s", action.value)
