import json
from dataclasses import dataclass
from enum import Enum

ACTION_FIELD = "action"


class UnknownActionError(ValueError):
    pass


class Action(str, Enum):
    MUTE = "mute"
    VOLUME_UP = "volume_up"
    VOLUME_DOWN = "volume_down"

    @classmethod
    def parse(cls, tag: str) -> "Action":
        try:
            return cls(tag)
        except ValueError:
            raise UnknownActionError(f"Unknown action: {tag!r}") from None

    @classmethod
    def tags(cls) -> list[str]:
        return [action.value for action in cls]


@dataclass(frozen=True)
class Message:
    action: Action

    def to_dict(self) -> dict[str, str]:
        return {ACTION_FIELD: self.action.value}


def encode_message(message: Message) -> str:
    return json.dumps(message.to_dict(), separators=(",", ":"))


def decode_message(payload: str | bytes) -> Message:
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8")
    data = json.loads(payload)
    if not isinstance(data, dict) or set(data) != {ACTION_FIELD}:
        raise UnknownActionError(f"Not an action message: {payload!r}")
    return Message(action=Action.parse(data[ACTION_FIELD]))


# pynput Key member names for the same media keys
KEY_NAME_ACTIONS: dict[str, str] = {
    "media_volume_mute": "mute",
    "media_volume_up": "volume_up",
    "media_volume_down": "volume_down",
}


def action_for_key_name(name: str | None) -> Action | None:
    tag = KEY_NAME_ACTIONS.get(name or "")
    if tag is None:
        return None
    return Action(tag)
