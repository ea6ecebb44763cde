"""Fixed-rate scheduler driving check cycles on a background thread."""

import logging
import math
import threading
import time
from collections.abc import Callable
from enum import Enum

logger = logging.getLogger(__name__)


class SchedulerError(Exception):
    """Raised when the periodic trigger cannot be set up."""

    pass


class SchedulerState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class Scheduler:
    """Runs ``tick`` every ``interval`` seconds until stopped.

    Ticks are anchored to the start time: tick *n* is due at
    ``start + n * interval``, so a slow tick does not push later ticks back.
    A tick that overruns one or more periods causes the missed ticks to be
    skipped, never queued. Only one tick runs at a time.

    With ``max_cycles > 0`` the scheduler stops by itself once that many
    ticks have completed. ``on_finished`` is called from the scheduler
    thread whenever it stops.

    Example:
        scheduler = Scheduler(run_once, interval=15, max_cycles=3, on_finished=done.set)
        scheduler.start()
        scheduler.wait()
    """

    def __init__(
        self,
        tick: Callable[[], object],
        interval: float,
        max_cycles: int = 0,
        on_finished: Callable[[], None] | None = None,
    ) -> None:
        if not math.isfinite(interval) or interval <= 0:
            raise SchedulerError(f"Interval must be positive (got {interval})")
        if max_cycles < 0:
            raise SchedulerError(f"max_cycles must be non-negative (got {max_cycles})")

        self._tick = tick
        self._interval = interval
        self._max_cycles = max_cycles
        self._on_finished = on_finished
        self._stop_event = threading.Event()
        self._finished = threading.Event()
        self._thread: threading.Thread | None = None
        self._state = SchedulerState.IDLE
        self._completed = 0
        self._skipped_ticks = 0

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def completed_cycles(self) -> int:
        return self._completed

    @property
    def skipped_ticks(self) -> int:
        """Ticks dropped because an earlier tick overran its period."""
        return self._skipped_ticks

    def start(self) -> None:
        """Start ticking in a background thread.

        Raises:
            SchedulerError: If the scheduler already stopped or the thread
                cannot be started.
        """
        if self._state is SchedulerState.STOPPED:
            raise SchedulerError("Scheduler has stopped and cannot be restarted")
        if self._state is SchedulerState.RUNNING:
            logger.warning("Scheduler already running")
            return

        self._thread = threading.Thread(target=self._run_loop, daemon=True, name="scheduler")
        self._state = SchedulerState.RUNNING
        try:
            self._thread.start()
        except RuntimeError as e:
            self._state = SchedulerState.STOPPED
            self._finished.set()
            raise SchedulerError(f"Failed to start scheduler thread: {e}")

        if self._max_cycles:
            logger.info("Scheduler started: every %ss, %d cycle(s)", self._interval, self._max_cycles)
        else:
            logger.info("Scheduler started: every %ss", self._interval)

    def stop(self, timeout: float | None = None) -> None:
        """Stop scheduling further ticks.

        A tick already in progress runs to completion; this call waits for it
        unless ``timeout`` expires first or it is made from the tick itself.
        """
        self._stop_event.set()

        if self._thread is None:
            self._state = SchedulerState.STOPPED
            self._finished.set()
            return

        if self._thread is threading.current_thread() or not self._thread.is_alive():
            return

        logger.info("Stopping scheduler...")
        self._thread.join(timeout=timeout)

        if self._thread.is_alive():
            logger.warning("Scheduler thread did not stop within timeout")
        else:
            logger.info("Scheduler stopped")

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the scheduler has stopped. Returns False on timeout."""
        return self._finished.wait(timeout)

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run_loop(self) -> None:
        """Main scheduling loop - runs in background thread."""
        logger.debug("Scheduler loop started")
        start = time.monotonic()
        tick_index = 0

        try:
            while not self._stop_event.is_set():
                delay = start + tick_index * self._interval - time.monotonic()
                if delay > 0 and self._stop_event.wait(timeout=delay):
                    break

                self._run_tick()

                if self._max_cycles and self._completed >= self._max_cycles:
                    logger.info("Reached max cycles (%d)", self._max_cycles)
                    break

                elapsed = time.monotonic() - start
                next_index = max(tick_index + 1, math.ceil(elapsed / self._interval))
                missed = next_index - tick_index - 1
                if missed:
                    self._skipped_ticks += missed
                    logger.warning("Cycle overran the %ss interval, skipping %d tick(s)", self._interval, missed)
                tick_index = next_index
        finally:
            self._state = SchedulerState.STOPPED
            self._finished.set()
            logger.debug("Scheduler loop exited")
            if self._on_finished is not None:
                try:
                    self._on_finished()
                except Exception as e:
                    logger.error("Scheduler finish callback failed: %s", e)

    def _run_tick(self) -> None:
        try:
            self._tick()
        except Exception:
            logger.exception("Scheduled cycle failed")
        finally:
            self._completed += 1
