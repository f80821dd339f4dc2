from dataclasses import dataclass, field
from time import time


@dataclass(frozen=True)
class ChannelEvent:
    timestamp: float = field(default_factory=time)


@dataclass(frozen=True)
class Connected(ChannelEvent):
    url: str = ""


@dataclass(frozen=True)
class Disconnected(ChannelEvent):
    reason: str = ""


@dataclass(frozen=True)
class MessageReceived(ChannelEvent):
    data: str | bytes = ""
