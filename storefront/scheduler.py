"""Single-flight scheduler for cart re-syncs.

DOM mutations and cart API calls both ask for a re-sync. Requests are
debounced, never overlap, and keep ``cooldown`` seconds between the end
of one run and the start of the next.
"""
from __future__ import annotations

import logging
import threading
import time
from functools import partial
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class SyncScheduler:
    """Runs ``task`` on a timer thread, one invocation at a time."""

    def __init__(
        self,
        task: Callable[[], Any],
        debounce: float = 0.5,
        cooldown: float = 1.5,
        timer_factory: Callable[..., Any] = threading.Timer,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.task = task
        self.debounce = debounce
        self.cooldown = cooldown
        self.timer_factory = timer_factory
        self.clock = clock

        self._lock = threading.RLock()
        self._timer: Optional[Any] = None
        # Bumped on every arm and cancel; a timer firing with an older value is stale
        self._generation = 0
        self._in_flight = False
        self._pending = False
        self.last_finished: Optional[float] = None
        self.last_result: Any = None
        self.runs = 0

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def armed(self) -> bool:
        return self._timer is not None

    def _arm(self, delay: float) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._generation += 1
        self._timer = self.timer_factory(delay, partial(self._fire, self._generation))
        self._timer.daemon = True
        self._timer.start()

    def schedule(self, delay: Optional[float] = None) -> None:
        """Request a run; repeated requests within the debounce collapse into one."""
        with self._lock:
            if self._in_flight:
                self._pending = True
                return
            self._arm(self.debounce if delay is None else delay)

    def cancel(self) -> None:
        """Drop any armed timer and pending rerun. A run in progress finishes."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._generation += 1
            self._pending = False

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._timer = None
            if self._in_flight:
                self._pending = True
                return
            if self.last_finished is not None:
                remaining = self.cooldown - (self.clock() - self.last_finished)
                if remaining > 0:
                    self._arm(remaining)
                    return
            self._in_flight = True

        try:
            self.last_result = self.task()
            self.runs += 1
        except Exception as e:
            logger.exception("Scheduled cart sync failed: %s", e)
        finally:
            with self._lock:
                self._in_flight = False
                self.last_finished = self.clock()
                rerun, self._pending = self._pending, False
            if rerun:
                self.schedule(self.cooldown)

    def get_status(self) -> dict:
        return {
            "in_flight": self._in_flight,
            "armed": self.armed,
            "pending": self._pending,
            "runs": self.runs,
            "last_finished": self.last_finished,
        }
