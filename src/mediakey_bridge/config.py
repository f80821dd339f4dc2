from typing import Literal
from pydantic_settings import BaseSettings, SettingsConfigDict


class BridgeConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="MEDIAKEY_BRIDGE_")

    host: str = "localhost:8000"
    ws_path: str = "/ws"

    reconnect_delay_seconds: float = 2.0
    heartbeat_interval_seconds: float = 5.0
    connect_timeout_seconds: float = 10.0

    key_source: Literal["pynput", "none"] = "pynput"

    socket_path: str = "/tmp/mediakey-bridge.sock"
    log_file: str = ""

    @property
    def ws_url(self) -> str:
        return f"ws://{self.host}{self.ws_path}"

    @property
    def page_url(self) -> str:
        return f"http://{self.host}"

    def host_and_port(self) -> tuple[str, int]:
        host, _, port = self.host.rpartition(":")
        if not host:
            return self.host, 80
        try:
            return host, int(port)
        except ValueError:
            return self.host, 80
