"""
Timer Sources
=============

Everything in the engine runs as deferred callbacks on ONE execution
context: the 1 second tick and every waypoint of an in-flight trajectory.
Nothing sleeps inline, so a tick and the waypoints of a trajectory simply
interleave.

A timer source provides:
    now()                          -> monotonic seconds
    call_every(seconds, callback)  -> repeat callback until stopped
    call_later(delay, callback)    -> run callback once after delay

Two implementations:
- TkScheduler: rides on the tkinter event loop (root.after)
- SchedScheduler: headless loop on top of the stdlib sched module
"""

import logging
import sched
import time
from typing import Callable

logger = logging.getLogger(__name__)


def _run_safely(callback: Callable[[], None]) -> None:
    try:
        callback()
    except Exception as e:
        logger.exception(f"Error in scheduled callback: {e}")


class TkScheduler:
    """Timer source backed by a tkinter widget's after() queue."""

    def __init__(self, widget):
        self._widget = widget
        self._stopped = False

    def now(self) -> float:
        return time.monotonic()

    def call_later(self, delay: float, callback: Callable[[], None]) -> None:
        if self._stopped:
            return
        ms = max(0, int(round(delay * 1000)))
        self._widget.after(ms, lambda: self._dispatch(callback))

    def call_every(self, seconds: float, callback: Callable[[], None]) -> None:
        def repeat():
            _run_safely(callback)
            self.call_later(seconds, repeat)

        self.call_later(seconds, repeat)

    def _dispatch(self, callback: Callable[[], None]) -> None:
        if not self._stopped:
            _run_safely(callback)

    def stop(self) -> None:
        """Stop rescheduling; callbacks already queued become no-ops."""
        self._stopped = True


class SchedScheduler:
    """
    Headless timer source.

    run() blocks the calling thread, dispatching callbacks in deadline
    order until stop() is called or the queue drains.
    """

    def __init__(self):
        self._scheduler = sched.scheduler(time.monotonic, time.sleep)
        self._stopped = False

    def now(self) -> float:
        return time.monotonic()

    def call_later(self, delay: float, callback: Callable[[], None]) -> None:
        if self._stopped:
            return
        self._scheduler.enter(max(0.0, delay), 1, self._dispatch, (callback,))

    def call_every(self, seconds: float, callback: Callable[[], None]) -> None:
        def repeat():
            _run_safely(callback)
            self.call_later(seconds, repeat)

        self.call_later(seconds, repeat)

    def _dispatch(self, callback: Callable[[], None]) -> None:
        if not self._stopped:
            _run_safely(callback)

    def run(self) -> None:
        logger.info("Headless scheduler running")
        self._scheduler.run()
        logger.info("Headless scheduler stopped")

    def stop(self) -> None:
        """Drop every pending callback so run() returns."""
        self._stopped = True
        for event in list(self._scheduler.queue):
            try:
                self._scheduler.cancel(event)
            except ValueError:
                # Already dispatched
                pass
