"""Tests for the fixed-rate scheduler."""

import threading
import time

import pytest

from domainwatch.scheduler import Scheduler, SchedulerError, SchedulerState


class TestSchedulerSetup:
    """Tests for scheduler construction and state transitions."""

    @pytest.mark.parametrize("interval", [0, -5])
    def test_rejects_non_positive_interval(self, interval: float) -> None:
        """A non-positive interval cannot be scheduled."""
        with pytest.raises(SchedulerError, match="Interval must be positive"):
            Scheduler(lambda: None, interval=interval)

    @pytest.mark.parametrize("interval", [float("nan"), float("inf")])
    def test_rejects_non_finite_interval(self, interval: float) -> None:
        """NaN and infinity cannot be scheduled either."""
        with pytest.raises(SchedulerError, match="Interval must be positive"):
            Scheduler(lambda: None, interval=interval)

    def test_rejects_negative_max_cycles(self) -> None:
        """max_cycles cannot be negative."""
        with pytest.raises(SchedulerError, match="max_cycles"):
            Scheduler(lambda: None, interval=1, max_cycles=-1)

    def test_starts_idle(self) -> None:
        """A new scheduler is idle and not running."""
        scheduler = Scheduler(lambda: None, interval=1)
        assert scheduler.state is SchedulerState.IDLE
        assert not scheduler.is_running()
        assert scheduler.completed_cycles == 0

    def test_start_runs(self) -> None:
        """start() moves the scheduler to running."""
        scheduler = Scheduler(lambda: None, interval=60)
        scheduler.start()
        try:
            assert scheduler.state is SchedulerState.RUNNING
            assert scheduler.is_running()
        finally:
            scheduler.stop(timeout=5)

    def test_multiple_start_calls_safe(self) -> None:
        """A second start() is ignored while running."""
        scheduler = Scheduler(lambda: None, interval=60)
        scheduler.start()
        scheduler.start()
        try:
            assert scheduler.is_running()
        finally:
            scheduler.stop(timeout=5)

    def test_cannot_restart_after_stop(self) -> None:
        """Stopped is final."""
        scheduler = Scheduler(lambda: None, interval=60)
        scheduler.start()
        scheduler.stop(timeout=5)

        assert scheduler.state is SchedulerState.STOPPED
        with pytest.raises(SchedulerError, match="cannot be restarted"):
            scheduler.start()

    def test_stop_before_start(self) -> None:
        """Stopping an idle scheduler stops it for good."""
        scheduler = Scheduler(lambda: None, interval=60)
        scheduler.stop()

        assert scheduler.state is SchedulerState.STOPPED
        assert scheduler.wait(timeout=0)


class TestSchedulerRun:
    """Tests for running ticks."""

    def test_max_cycles_one_runs_once_and_finishes(self) -> None:
        """With max_cycles=1 exactly one tick runs, then on_finished fires."""
        ticks: list[float] = []
        finished = threading.Event()
        scheduler = Scheduler(
            lambda: ticks.append(time.monotonic()),
            interval=0.05,
            max_cycles=1,
            on_finished=finished.set,
        )

        scheduler.start()

        assert finished.wait(timeout=5)
        assert scheduler.wait(timeout=5)
        time.sleep(0.2)
        assert len(ticks) == 1
        assert scheduler.completed_cycles == 1
        assert scheduler.state is SchedulerState.STOPPED

    def test_first_tick_runs_immediately(self) -> None:
        """The first cycle does not wait a full interval."""
        ran = threading.Event()
        scheduler = Scheduler(ran.set, interval=60, max_cycles=1)

        scheduler.start()

        assert ran.wait(timeout=5)
        scheduler.stop(timeout=5)

    def test_runs_max_cycles_ticks(self) -> None:
        """The scheduler stops after max_cycles ticks."""
        count = []
        scheduler = Scheduler(lambda: count.append(1), interval=0.02, max_cycles=3)

        scheduler.start()

        assert scheduler.wait(timeout=5)
        assert len(count) == 3
        assert scheduler.state is SchedulerState.STOPPED

    def test_ticks_are_anchored_to_start(self) -> None:
        """Tick n fires near start + n * interval, not after the previous tick ends."""
        ticks: list[float] = []

        def tick() -> None:
            ticks.append(time.monotonic())
            time.sleep(0.05)

        scheduler = Scheduler(tick, interval=0.2, max_cycles=3)
        scheduler.start()
        assert scheduler.wait(timeout=5)

        # A completion-relative schedule would put the third tick at ~0.5s.
        assert 0.35 <= ticks[2] - ticks[0] < 0.48

    def test_overrunning_tick_skips_missed_ticks(self) -> None:
        """A tick longer than the interval drops the ticks it overlapped."""
        starts: list[float] = []

        def slow_tick() -> None:
            starts.append(time.monotonic())
            if len(starts) == 1:
                time.sleep(0.25)

        scheduler = Scheduler(slow_tick, interval=0.1, max_cycles=2)
        scheduler.start()
        assert scheduler.wait(timeout=5)

        assert scheduler.skipped_ticks >= 1
        assert len(starts) == 2
        # The second tick waits for the next boundary instead of firing at once.
        assert starts[1] - starts[0] >= 0.28

    def test_ticks_never_overlap(self) -> None:
        """Only one tick runs at a time."""
        active = []
        overlaps = []

        def tick() -> None:
            if active:
                overlaps.append(True)
            active.append(1)
            time.sleep(0.03)
            active.pop()

        scheduler = Scheduler(tick, interval=0.01, max_cycles=5)
        scheduler.start()
        assert scheduler.wait(timeout=5)

        assert overlaps == []

    def test_failing_tick_does_not_stop_scheduler(self) -> None:
        """An exception in one tick is logged and the next tick still runs."""
        calls = []

        def tick() -> None:
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("boom")

        scheduler = Scheduler(tick, interval=0.02, max_cycles=2)
        scheduler.start()

        assert scheduler.wait(timeout=5)
        assert len(calls) == 2

    def test_stop_interrupts_wait_between_ticks(self) -> None:
        """stop() does not wait out a long interval."""
        ran = threading.Event()
        scheduler = Scheduler(ran.set, interval=60)
        scheduler.start()
        assert ran.wait(timeout=5)

        begin = time.monotonic()
        scheduler.stop(timeout=5)

        assert time.monotonic() - begin < 2
        assert not scheduler.is_running()
        assert scheduler.completed_cycles == 1

    def test_stop_lets_in_flight_tick_finish(self) -> None:
        """A tick in progress completes before stop() returns."""
        started = threading.Event()
        done = []

        def tick() -> None:
            started.set()
            time.sleep(0.2)
            done.append(1)

        scheduler = Scheduler(tick, interval=60)
        scheduler.start()
        assert started.wait(timeout=5)

        scheduler.stop()

        assert done == [1]
        assert scheduler.completed_cycles == 1
        assert scheduler.state is SchedulerState.STOPPED

    def test_on_finished_called_on_stop(self) -> None:
        """on_finished fires for an external stop as well."""
        finished = threading.Event()
        scheduler = Scheduler(lambda: None, interval=60, on_finished=finished.set)
        scheduler.start()
        scheduler.stop(timeout=5)

        assert finished.wait(timeout=5)

    def test_stop_from_within_tick(self) -> None:
        """A tick may stop its own scheduler without deadlocking."""
        holder: dict[str, Scheduler] = {}
        scheduler = Scheduler(lambda: holder["s"].stop(), interval=0.01)
        holder["s"] = scheduler

        scheduler.start()

        assert scheduler.wait(timeout=5)
        assert scheduler.completed_cycles == 1
