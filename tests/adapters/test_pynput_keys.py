from types import SimpleNamespace

import pytest

from mediakey_bridge.adapters.pynput_keys import MediaKeyListener
from mediakey_bridge.domain.actions import Action


def key(name: str | None) -> SimpleNamespace:
    return SimpleNamespace(name=name)


@pytest.fixture
def listener_with_handler():
    received = []
    listener = MediaKeyListener()
    listener._handler = received.append
    return listener, received


class TestMediaKeyListener:
    def test_media_keys_map_to_actions(self, listener_with_handler):
        listener, received = listener_with_handler
        listener._on_press(key("media_volume_mute"))
        listener._on_press(key("media_volume_up"))
        listener._on_press(key("media_volume_down"))
        assert received == [Action.MUTE, Action.VOLUME_UP, Action.VOLUME_DOWN]

    def test_other_keys_ignored(self, listener_with_handler):
        listener, received = listener_with_handler
        listener._on_press(key("media_play_pause"))
        listener._on_press(key(None))
        listener._on_press(SimpleNamespace(char="m"))
        listener._on_press(None)
        assert received == []

    def test_no_handler_before_start(self):
        MediaKeyListener()._on_press(key("media_volume_mute"))

    def test_handler_errors_are_contained(self):
        listener = MediaKeyListener()

        def broken(action):
            raise RuntimeError("channel gone")

        listener._handler = broken
        listener._on_press(key("media_volume_mute"))

    def test_not_running_before_start(self):
        assert not MediaKeyListener().running

    def test_stop_without_start(self):
        listener = MediaKeyListener()
        listener.stop()
        assert not listener.running

    def test_real_pynput_keys(self, listener_with_handler):
        keyboard = pytest.importorskip("pynput.keyboard", exc_type=ImportError)
        listener, received = listener_with_handler
        listener._on_press(keyboard.Key.media_volume_mute)
        listener._on_press(keyboard.Key.media_play_pause)
        assert received == [Action.MUTE]
