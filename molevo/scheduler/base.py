"""
molevo/scheduler/base.py

Abstract StepScheduler: a cancellable, restartable periodic task.

The evolution controller never loops over generations itself.  It hands a
step callback to a scheduler, which invokes it repeatedly until either

  - the callback returns False (the run completed or was paused), or
  - stop() is called (pause, reset, restart).

Between invocations observers may read the controller state, and a pause
request takes effect before the next step.  A step is never interrupted
part-way through.

Contract
--------
  - start(callback) replaces any previous task (the old one is stopped
    first), so at most one callback is ever scheduled.
  - stop() is synchronous: once it returns no further invocation of the
    old callback will begin.
  - stop() on an idle scheduler is a no-op.

Public API
----------
    build_scheduler(config) -> StepScheduler

    # Abstract interface every backend implements:
    start(callback) -> None
    stop() -> None
    active -> bool
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable

#: A step callback returns False to end the periodic task.
StepCallback = Callable[[], "bool | None"]


class StepScheduler(ABC):
    """Abstract base class for generation-step schedulers."""

    @abstractmethod
    def start(self, callback: StepCallback) -> None:
        """Begin invoking `callback` periodically, replacing any current task."""
        ...

    @abstractmethod
    def stop(self) -> None:
        """Cancel the current task; no new invocation starts after return."""
        ...

    @property
    @abstractmethod
    def active(self) -> bool:
        """True while a task is scheduled."""
        ...


def build_scheduler(config) -> StepScheduler:
    """
    Instantiate the appropriate StepScheduler from a SchedulerConfig.

    Parameters
    ----------
    config:
        A SchedulerConfig instance.

    Returns
    -------
    StepScheduler
    """
    from molevo.scheduler.local import ManualScheduler, ThreadScheduler

    if config.type == "manual":
        return ManualScheduler()
    return ThreadScheduler(interval=config.interval)
