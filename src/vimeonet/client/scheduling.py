"""Timers for retry backoff and executors for completion delivery.

:class:`RetryScheduler` runs a function once after a delay on a daemon
timer thread and remembers pending timers so that a closing client can
cancel them, telling each one why it was dropped. :class:`InlineExecutor`
runs submitted work immediately on the submitting thread; pass it as a
completion queue to receive results on the engine's worker thread instead
of a dedicated completion thread.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

DropCallback = Callable[[str], None]


class InlineExecutor(Executor):
    """Executor that runs each submitted callable synchronously."""

    def submit(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Future[Any]:
        future: Future[Any] = Future()
        try:
            result = fn(*args, **kwargs)
        except BaseException as exc:
            future.set_exception(exc)
        else:
            future.set_result(result)
        return future


class RetryScheduler:
    """Schedules delayed re-dispatches of failed requests.

    A scheduled call that will never run is reported through its
    ``on_drop`` callback with the reason: the scheduler closed before the
    timer fired, or the call itself raised.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._timers: dict[threading.Timer, Optional[DropCallback]] = {}
        self._closed = False

    @property
    def pending(self) -> int:
        """Number of timers that have not fired yet."""
        with self._lock:
            return len(self._timers)

    def schedule(
        self,
        delay: float,
        fn: Callable[..., Any],
        *args: Any,
        on_drop: Optional[DropCallback] = None,
    ) -> None:
        """Call ``fn(*args)`` once, *delay* seconds from now."""

        def fire() -> None:
            with self._lock:
                if timer not in self._timers:
                    return
                del self._timers[timer]
            try:
                fn(*args)
            except Exception as exc:
                logger.exception("Scheduled retry failed to dispatch")
                _report_drop(on_drop, f"dispatch failed: {exc}")

        timer = threading.Timer(delay, fire)
        timer.daemon = True
        with self._lock:
            closed = self._closed
            if not closed:
                self._timers[timer] = on_drop
        if closed:
            logger.debug("Scheduler closed, dropping retry")
            _report_drop(on_drop, "the client is closed")
            return
        timer.start()

    def cancel_all(self) -> None:
        """Cancel every pending timer and refuse further scheduling."""
        with self._lock:
            timers = list(self._timers.items())
            self._timers.clear()
            self._closed = True
        for timer, on_drop in timers:
            timer.cancel()
            _report_drop(on_drop, "the client was closed")


def _report_drop(on_drop: Optional[DropCallback], reason: str) -> None:
    if on_drop is None:
        return
    try:
        on_drop(reason)
    except Exception:
        logger.exception("Retry drop callback raised")
