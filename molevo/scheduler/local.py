"""
molevo/scheduler/local.py

In-process schedulers for the generation loop.

ThreadScheduler
    Runs the step callback on a background daemon thread, sleeping
    `interval` seconds before each call.  The sleep is an Event wait, so
    stop() wakes the thread immediately instead of waiting out the delay.

ManualScheduler
    Does nothing by itself.  The caller advances the run one step at a time
    with tick() or run_until_stopped().  Used by the test suite and by
    anyone who wants deterministic, single-threaded stepping.

Usage
-----
    scheduler:
      type: thread
      interval: 0.05
"""

from __future__ import annotations

import logging
import threading

from molevo.scheduler.base import StepCallback, StepScheduler

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Background thread scheduler
# ---------------------------------------------------------------------------

class ThreadScheduler(StepScheduler):
    """
    Periodic background-thread scheduler.

    Each start() creates a fresh thread and stop event, so a stopped
    scheduler can be restarted.  stop() joins the worker unless it is
    called from the worker itself (a step callback stopping its own run).
    """

    def __init__(self, interval: float = 0.05) -> None:
        self.interval = interval
        self._lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._stop_event: threading.Event | None = None

    def start(self, callback: StepCallback) -> None:
        self.stop()
        stop_event = threading.Event()
        thread = threading.Thread(
            target=self._loop,
            args=(callback, stop_event),
            name="molevo-step",
            daemon=True,
        )
        with self._lock:
            self._thread = thread
            self._stop_event = stop_event
        thread.start()

    def _loop(self, callback: StepCallback, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.interval):
            try:
                keep_going = callback()
            except Exception:
                logger.exception("Generation step raised; stopping the scheduler")
                break
            if keep_going is False:
                break
        stop_event.set()

    def stop(self) -> None:
        with self._lock:
            thread, stop_event = self._thread, self._stop_event
            self._thread = None
            self._stop_event = None
        if stop_event is None:
            return
        stop_event.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    @property
    def active(self) -> bool:
        with self._lock:
            return (
                self._thread is not None
                and self._thread.is_alive()
                and not self._stop_event.is_set()
            )


# ---------------------------------------------------------------------------
# Caller-driven scheduler
# ---------------------------------------------------------------------------

class ManualScheduler(StepScheduler):
    """Scheduler whose steps are triggered explicitly by the caller."""

    def __init__(self) -> None:
        self._callback: StepCallback | None = None
        self.ticks = 0

    def start(self, callback: StepCallback) -> None:
        self._callback = callback

    def stop(self) -> None:
        self._callback = None

    @property
    def active(self) -> bool:
        return self._callback is not None

    def tick(self) -> bool:
        """
        Run one scheduled step.

        Returns
        -------
        bool
            True if a task is still scheduled afterwards.
        """
        callback = self._callback
        if callback is None:
            return False
        self.ticks += 1
        if callback() is False and self._callback is callback:
            self._callback = None
        return self._callback is not None

    def run_until_stopped(self, max_ticks: int | None = None) -> int:
        """Tick until the task ends (or max_ticks is reached); return ticks run."""
        n = 0
        while self.active and (max_ticks is None or n < max_ticks):
            self.tick()
            n += 1
        return n
