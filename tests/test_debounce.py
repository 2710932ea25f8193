"""Tests for the debounced search dispatcher, driven by a fake clock."""

import threading

import pytest

from debounce import Debouncer, ThreadedDebouncer


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance_to(self, t: float) -> None:
        self.now = t


def _debouncer(wait: float = 0.3):
    clock = FakeClock()
    fired: list = []
    return Debouncer(fired.append, wait=wait, clock=clock), clock, fired


class TestDebouncer:
    def test_burst_coalesces_to_last_value(self) -> None:
        deb, clock, fired = _debouncer()
        for t, text in ((0.0, "a"), (0.05, "ab"), (0.10, "abc"), (0.299, "d")):
            clock.advance_to(t)
            deb.submit(text)
            assert deb.fire_due() is False

        clock.advance_to(0.5)
        assert deb.fire_due() is False
        assert fired == []

        clock.advance_to(0.6)
        assert deb.fire_due() is True
        assert fired == ["d"]

        clock.advance_to(2.0)
        assert deb.fire_due() is False
        assert fired == ["d"]

    def test_deadline_moves_with_each_submit(self) -> None:
        deb, clock, _ = _debouncer(wait=1.0)
        deb.submit("x")
        assert deb.deadline == 1.0
        clock.advance_to(0.4)
        deb.submit("y")
        assert deb.deadline == pytest.approx(1.4)

    def test_separate_bursts_fire_separately(self) -> None:
        deb, clock, fired = _debouncer()
        deb.submit("first")
        clock.advance_to(0.3)
        deb.fire_due()
        clock.advance_to(1.0)
        deb.submit("second")
        clock.advance_to(1.31)
        deb.fire_due()
        assert fired == ["first", "second"]

    def test_cancel_drops_pending(self) -> None:
        deb, clock, fired = _debouncer()
        deb.submit("abc")
        assert deb.pending
        deb.cancel()
        assert not deb.pending
        assert deb.deadline is None
        clock.advance_to(10.0)
        assert deb.fire_due() is False
        assert fired == []

    def test_flush_dispatches_immediately(self) -> None:
        deb, _, fired = _debouncer()
        deb.submit("now")
        assert deb.flush() is True
        assert fired == ["now"]
        assert deb.flush() is False

    def test_empty_string_is_a_value(self) -> None:
        deb, clock, fired = _debouncer()
        deb.submit("")
        clock.advance_to(0.3)
        assert deb.fire_due() is True
        assert fired == [""]


class TestThreadedDebouncer:
    def test_fires_once_after_quiet_period(self) -> None:
        done = threading.Event()
        fired: list = []

        def callback(value):
            fired.append(value)
            done.set()

        deb = ThreadedDebouncer(callback, wait=0.05)
        deb.submit("a")
        deb.submit("ab")
        assert done.wait(timeout=2.0)
        assert fired == ["ab"]

    def test_early_timer_rearms_until_due(self) -> None:
        done = threading.Event()
        fired: list = []
        # submit and the first timer callback both read 0.0, so the first
        # wake-up finds the value not yet due; later reads are past the deadline
        readings = iter([0.0, 0.0])

        def clock() -> float:
            return next(readings, 1.0)

        def callback(value):
            fired.append(value)
            done.set()

        deb = ThreadedDebouncer(callback, wait=0.05, clock=clock)
        deb.submit("late")
        assert done.wait(timeout=2.0)
        assert fired == ["late"]
        assert not deb.pending

    def test_cancel_stops_timer(self) -> None:
        fired: list = []
        deb = ThreadedDebouncer(fired.append, wait=0.05)
        deb.submit("a")
        deb.cancel()
        assert deb._timer is None
        assert fired == []
