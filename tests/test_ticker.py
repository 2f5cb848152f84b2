"""Unit tests for the tick sources."""

import threading

from lifeos.core.ticker import ManualTicker, ThreadingTicker


# ------------------------------------------------------------------
# ManualTicker
# ------------------------------------------------------------------

class TestManualTicker:
    def test_not_running_initially(self):
        ticker = ManualTicker()
        assert ticker.is_running is False
        assert ticker.advance(5) == 0

    def test_advance_fires_callback(self):
        ticker = ManualTicker()
        calls = []
        ticker.start(lambda: calls.append(1))
        assert ticker.advance(3) == 3
        assert len(calls) == 3

    def test_stop_from_callback_ends_advance(self):
        ticker = ManualTicker()
        calls = []

        def _cb():
            calls.append(1)
            if len(calls) == 2:
                ticker.stop()

        ticker.start(_cb)
        assert ticker.advance(10) == 2
        assert ticker.is_running is False

    def test_restart_replaces_callback(self):
        ticker = ManualTicker()
        first, second = [], []
        ticker.start(lambda: first.append(1))
        ticker.start(lambda: second.append(1))
        ticker.advance(2)
        assert first == []
        assert second == [1, 1]
        assert ticker.start_count == 2


# ------------------------------------------------------------------
# ThreadingTicker
# ------------------------------------------------------------------

class TestThreadingTicker:
    def test_fires_until_stopped(self):
        ticker = ThreadingTicker(interval=0.01)
        fired = threading.Event()
        ticker.start(fired.set)
        assert fired.wait(timeout=2)
        assert ticker.is_running is True
        ticker.stop()
        assert ticker.is_running is False

    def test_stop_when_not_started(self):
        ticker = ThreadingTicker(interval=0.01)
        ticker.stop()
        assert ticker.is_running is False

    def test_start_replaces_previous_thread(self):
        ticker = ThreadingTicker(interval=0.01)
        ticker.start(lambda: None)
        first = ticker._thread
        ticker.start(lambda: None)
        second = ticker._thread
        assert first is not second
        first.join(timeout=1)
        assert not first.is_alive()
        assert second.is_alive()
        ticker.stop()

    def test_callback_exception_does_not_kill_thread(self):
        ticker = ThreadingTicker(interval=0.01)
        calls = []
        done = threading.Event()

        def _cb():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("boom")
            done.set()

        ticker.start(_cb)
        assert done.wait(timeout=2)
        ticker.stop()
        assert len(calls) >= 2

    def test_callback_can_stop_its_own_ticker(self):
        ticker = ThreadingTicker(interval=0.01)
        stopped = threading.Event()

        def _cb():
            ticker.stop()
            stopped.set()

        ticker.start(_cb)
        assert stopped.wait(timeout=2)
        assert ticker.is_running is False
