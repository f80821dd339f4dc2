import logging
from collections.abc import Callable

from mediakey_bridge.config import BridgeConfig
from mediakey_bridge.adapters.asyncio_scheduler import AsyncioScheduler
from mediakey_bridge.adapters.unix_control import UnixSocketControlServer
from mediakey_bridge.adapters.websockets_transport import WebsocketsTransport
from mediakey_bridge.domain.channel import MessagingChannel
from mediakey_bridge.domain.controller import PresentationController
from mediakey_bridge.ports.key_source import ActionSourcePort

logger = logging.getLogger(__name__)


def create_channel(config: BridgeConfig) -> MessagingChannel:
    return MessagingChannel(
        url=config.ws_url,
        transport=WebsocketsTransport(),
        scheduler=AsyncioScheduler(),
        reconnect_delay_seconds=config.reconnect_delay_seconds,
        heartbeat_interval_seconds=config.heartbeat_interval_seconds,
        connect_timeout_seconds=config.connect_timeout_seconds,
    )


def create_key_source(config: BridgeConfig) -> ActionSourcePort | None:
    if config.key_source == "none":
        logger.info("Key capture disabled")
        return None
    from mediakey_bridge.adapters.pynput_keys import MediaKeyListener

    return MediaKeyListener()


def create_bridge(
    config: BridgeConfig,
    on_quit: Callable[[], None] | None = None,
) -> tuple[MessagingChannel, PresentationController, ActionSourcePort | None, UnixSocketControlServer]:
    channel = create_channel(config)
    controller = PresentationController(channel, page_url=config.page_url, on_quit=on_quit)
    key_source = create_key_source(config)
    control = UnixSocketControlServer(socket_path=config.socket_path)
    return channel, controller, key_source, control
