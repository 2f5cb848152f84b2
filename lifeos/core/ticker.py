"""Tick sources for the focus timer.

The timer depends on the :class:`Ticker` interface rather than on a real
clock, so the dashboard runs on :class:`ThreadingTicker` while tests drive
time by hand with :class:`ManualTicker`.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class Ticker(ABC):
    """Invokes a callback once per interval until stopped.

    ``start`` must cancel any previously scheduled callback first, so a
    ticker never drives more than one tick stream at a time.
    """

    @abstractmethod
    def start(self, callback: Callable[[], None]) -> None:
        """Begin calling *callback* once per interval."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop calling the callback.  Safe to call when already stopped."""
        pass

    @property
    @abstractmethod
    def is_running(self) -> bool:
        pass


class ThreadingTicker(Ticker):
    """Wall-clock ticker backed by a daemon thread."""

    def __init__(self, interval: float = 1.0) -> None:
        self.interval = interval
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None
        self._lock = threading.Lock()

    def start(self, callback: Callable[[], None]) -> None:
        with self._lock:
            self._stop_locked()
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run,
                args=(callback, stop_event),
                daemon=True,
                name="lifeos-ticker",
            )
            self._stop_event = stop_event
            self._thread = thread
            thread.start()

    def stop(self) -> None:
        with self._lock:
            self._stop_locked()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set()

    def _stop_locked(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()
        thread = self._thread
        self._thread = None
        self._stop_event = None
        # The callback itself may stop the ticker; never join the current thread.
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.interval * 2)

    def _run(self, callback: Callable[[], None], stop_event: threading.Event) -> None:
        while not stop_event.wait(self.interval):
            try:
                callback()
            except Exception:
                logger.exception("Tick callback failed")


class ManualTicker(Ticker):
    """Deterministic ticker for tests: time only moves on :meth:`advance`."""

    def __init__(self) -> None:
        self._callback: Optional[Callable[[], None]] = None
        self.start_count = 0

    def start(self, callback: Callable[[], None]) -> None:
        self._callback = callback
        self.start_count += 1

    def stop(self) -> None:
        self._callback = None

    @property
    def is_running(self) -> bool:
        return self._callback is not None

    def advance(self, ticks: int = 1) -> int:
        """Fire up to *ticks* callbacks; returns how many actually fired.

        Stops early once the callback has stopped the ticker.
        """
        fired = 0
        for _ in range(ticks):
            if self._callback is None:
                break
            self._callback()
            fired += 1
        return fired
