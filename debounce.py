"""
Debounced dispatch for search input.

Rapid submissions coalesce into a single callback once the input has been
quiet for ``wait`` seconds; the last submitted value wins. ``Debouncer`` is
driven explicitly (``fire_due``) against an injectable clock, which is how
the CLI and the tests use it. ``ThreadedDebouncer`` fires on its own with a
``threading.Timer``.
"""

import logging
import threading
import time
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

_NOTHING = object()


class Debouncer:
    """Arm / cancel / fire scheduler for a single trailing callback."""

    def __init__(
        self,
        callback: Callable[[Any], None],
        wait: float = 0.3,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.callback = callback
        self.wait = wait
        self.clock = clock
        self._lock = threading.Lock()
        self._pending: Any = _NOTHING
        self._deadline: Optional[float] = None

    @property
    def pending(self) -> bool:
        return self._pending is not _NOTHING

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    def submit(self, value: Any) -> None:
        """Arm the timer with ``value``, replacing whatever was pending."""
        with self._lock:
            self._pending = value
            self._deadline = self.clock() + self.wait

    def cancel(self) -> None:
        with self._lock:
            self._pending = _NOTHING
            self._deadline = None

    def _take(self, force: bool) -> Any:
        with self._lock:
            if self._pending is _NOTHING:
                return _NOTHING
            if not force and self.clock() < self._deadline:
                return _NOTHING
            value = self._pending
            self._pending = _NOTHING
            self._deadline = None
            return value

    def fire_due(self) -> bool:
        """Dispatch the pending value if its quiet period has elapsed."""
        value = self._take(force=False)
        if value is _NOTHING:
            return False
        logger.debug(f"Debounced dispatch: {value!r}")
        self.callback(value)
        return True

    def flush(self) -> bool:
        """Dispatch the pending value now, skipping the rest of the wait."""
        value = self._take(force=True)
        if value is _NOTHING:
            return False
        self.callback(value)
        return True


class ThreadedDebouncer(Debouncer):
    """Debouncer that fires by itself on a background timer thread."""

    def __init__(
        self,
        callback: Callable[[Any], None],
        wait: float = 0.3,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(callback, wait, clock)
        self._timer: Optional[threading.Timer] = None

    def submit(self, value: Any) -> None:
        super().submit(value)
        self._restart_timer()

    def cancel(self) -> None:
        super().cancel()
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _restart_timer(self, delay: Optional[float] = None) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = threading.Timer(self.wait if delay is None else delay, self._on_timer)
        self._timer.daemon = True
        self._timer.start()

    def _on_timer(self) -> None:
        if self.fire_due():
            return
        # Fired early or after a resubmit: wait out the rest of the quiet period
        with self._lock:
            deadline = self._deadline
        if deadline is not None:
            self._restart_timer(max(0.0, deadline - self.clock()))
