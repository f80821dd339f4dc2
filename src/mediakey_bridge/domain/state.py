from dataclasses import dataclass
from enum import Enum, auto


class ConnectionState(Enum):
    IDLE = auto()
    CONNECTING = auto()
    OPEN = auto()
    CLOSED = auto()


class LifecycleEvent(Enum):
    CONNECT_REQUESTED = auto()
    HANDSHAKE_SUCCEEDED = auto()
    HANDSHAKE_FAILED = auto()
    LINK_LOST = auto()
    RECONNECT_DUE = auto()


class Effect(Enum):
    OPEN_TRANSPORT = auto()
    CLOSE_TRANSPORT = auto()
    START_LISTENING = auto()
    SCHEDULE_RECONNECT = auto()
    NOTIFY_CONNECTED = auto()
    NOTIFY_DISCONNECTED = auto()


VALID_TRANSITIONS: dict[ConnectionState, set[ConnectionState]] = {
    ConnectionState.IDLE: {ConnectionState.CONNECTING},
    ConnectionState.CONNECTING: {ConnectionState.OPEN, ConnectionState.CLOSED},
    ConnectionState.OPEN: {ConnectionState.CLOSED},
    ConnectionState.CLOSED: {ConnectionState.CONNECTING},
}


@dataclass(frozen=True)
class Transition:
    target: ConnectionState
    effects: tuple[Effect, ...] = ()


_TRANSITIONS: dict[tuple[ConnectionState, LifecycleEvent], Transition] = {
    (ConnectionState.IDLE, LifecycleEvent.CONNECT_REQUESTED): Transition(
        ConnectionState.CONNECTING, (Effect.OPEN_TRANSPORT,)
    ),
    (ConnectionState.CLOSED, LifecycleEvent.CONNECT_REQUESTED): Transition(
        ConnectionState.CONNECTING, (Effect.OPEN_TRANSPORT,)
    ),
    (ConnectionState.CLOSED, LifecycleEvent.RECONNECT_DUE): Transition(
        ConnectionState.CONNECTING, (Effect.OPEN_TRANSPORT,)
    ),
    (ConnectionState.CONNECTING, LifecycleEvent.HANDSHAKE_SUCCEEDED): Transition(
        ConnectionState.OPEN, (Effect.START_LISTENING, Effect.NOTIFY_CONNECTED)
    ),
    (ConnectionState.CONNECTING, LifecycleEvent.HANDSHAKE_FAILED): Transition(
        ConnectionState.CLOSED, (Effect.CLOSE_TRANSPORT, Effect.SCHEDULE_RECONNECT)
    ),
    (ConnectionState.CONNECTING, LifecycleEvent.LINK_LOST): Transition(
        ConnectionState.CLOSED, (Effect.CLOSE_TRANSPORT, Effect.SCHEDULE_RECONNECT)
    ),
    (ConnectionState.OPEN, LifecycleEvent.LINK_LOST): Transition(
        ConnectionState.CLOSED,
        (Effect.CLOSE_TRANSPORT, Effect.SCHEDULE_RECONNECT, Effect.NOTIFY_DISCONNECTED),
    ),
}


class InvalidTransitionError(Exception):
    pass


def validate_transition(current: ConnectionState, target: ConnectionState) -> None:
    if target not in VALID_TRANSITIONS.get(current, set()):
        raise InvalidTransitionError(f"Cannot transition from {current.name} to {target.name}")


def transition(current: ConnectionState, event: LifecycleEvent) -> Transition | None:
    """Pure lifecycle step: the target state and effects for ``event``, or None
    when the event does not apply in ``current`` (e.g. a second connect request
    while CONNECTING or OPEN)."""
    result = _TRANSITIONS.get((current, event))
    if result is not None:
        validate_transition(current, result.target)
    return result
