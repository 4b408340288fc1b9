import queue

import pytest

pytest.importorskip("tkinter")

from barber_queue.gui import DisplayBoardApp


class _Var:
    def __init__(self) -> None:
        self.value = None

    def set(self, value):
        self.value = value


class _Root:
    def __init__(self) -> None:
        self.scheduled = []

    def after(self, ms, fn):
        self.scheduled.append((ms, fn))


class _SilentMqtt:
    def __init__(self) -> None:
        self.requests = 0

    def request(self, **kwargs):
        self.requests += 1
        raise TimeoutError("no reply")


def _board():
    # Skip __init__: it opens a real Tk window.
    app = DisplayBoardApp.__new__(DisplayBoardApp)
    app.namespace = "test/shop"
    app.refresh_ms = 250
    app.root = _Root()
    app.info_var = _Var()
    app._inbox = queue.Queue(maxsize=1)
    app._mqtt = _SilentMqtt()
    app._reply_topic = "reply/here"
    return app


def test_timed_out_refresh_is_retried_on_next_poll():
    app = _board()
    app._inbox.put_nowait({"type": "entries_changed"})

    app._drain_inbox()
    assert app._mqtt.requests == 1
    assert "not responding" in app.info_var.value
    assert not app._inbox.empty()

    app._drain_inbox()
    assert app._mqtt.requests == 2
    assert len(app.root.scheduled) == 2


def test_idle_poll_sends_nothing():
    app = _board()
    app._drain_inbox()
    assert app._mqtt.requests == 0
    assert len(app.root.scheduled) == 1
