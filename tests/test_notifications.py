"""Tests for change-signal debouncing."""

from unittest.mock import Mock

from flightdeck.services.notifications import RefreshDebouncer


class FakeTimer:
    """Timer stand-in that only fires when the test says so."""

    created = []

    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.started = False
        self.cancelled = False
        self.daemon = False
        FakeTimer.created.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True


def make_debouncer(refresh):
    FakeTimer.created = []
    return RefreshDebouncer(refresh, delay=0.5, timer_factory=FakeTimer)


def test_burst_is_coalesced():
    refresh = Mock()
    debouncer = make_debouncer(refresh)

    debouncer.signal("a")
    debouncer.signal("b")
    debouncer.signal()

    timers = FakeTimer.created
    assert len(timers) == 3
    assert [t.cancelled for t in timers] == [True, True, False]
    assert timers[-1].delay == 0.5

    timers[-1].callback()
    refresh.assert_called_once_with({"a", "b"})


def test_pending_ids_reset_after_flush():
    refresh = Mock()
    debouncer = make_debouncer(refresh)

    debouncer.signal("a")
    debouncer.flush()
    debouncer.signal()
    debouncer.flush()

    assert [c.args[0] for c in refresh.call_args_list] == [{"a"}, set()]


def test_refresh_errors_are_logged(caplog):
    debouncer = make_debouncer(Mock(side_effect=RuntimeError("boom")))

    debouncer.signal("a")
    debouncer.flush()

    assert "Refresh after change signal failed" in caplog.text


def test_cancel_drops_pending():
    refresh = Mock()
    debouncer = make_debouncer(refresh)

    debouncer.signal("a")
    debouncer.cancel()
    debouncer.flush()

    assert FakeTimer.created[0].cancelled
    refresh.assert_called_once_with(set())
