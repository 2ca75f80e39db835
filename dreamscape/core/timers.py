"""
Cancellable timer abstraction.

Every delayed or periodic action in the orchestration loop goes through a
Scheduler so that tests can replace wall-clock time with ManualScheduler
and step through time deterministically.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import time
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Tuple

from loguru import logger


Callback = Callable[[], None]


class TimerHandle:
    """Handle to a scheduled one-shot or periodic callback."""

    def __init__(self, delay: float, period: Optional[float] = None):
        self.delay = delay
        self.period = period
        self._cancelled = False
        self._cancel_hooks: List[Callback] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def periodic(self) -> bool:
        return self.period is not None

    def cancel(self):
        if self._cancelled:
            return
        self._cancelled = True
        for hook in self._cancel_hooks:
            hook()
        self._cancel_hooks.clear()

    def _on_cancel(self, hook: Callback):
        self._cancel_hooks.append(hook)


def _run_callback(callback: Callback):
    # Timer callbacks must never take the scheduler down with them
    try:
        callback()
    except Exception:
        logger.exception("Timer callback failed")


class Scheduler(ABC):
    """Clock plus delayed and periodic callbacks."""

    @abstractmethod
    def now(self) -> float:
        """Current time in seconds."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callback) -> TimerHandle:
        """Run callback once after delay seconds."""

    @abstractmethod
    def call_every(self, period: float, callback: Callback) -> TimerHandle:
        """Run callback every period seconds until cancelled."""


class AsyncioScheduler(Scheduler):
    """Scheduler backed by the running asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now(self) -> float:
        return time.time()

    def call_later(self, delay: float, callback: Callback) -> TimerHandle:
        handle = TimerHandle(delay)

        def fire():
            if not handle.cancelled:
                _run_callback(callback)

        loop_handle = self.loop.call_later(max(0.0, delay), fire)
        handle._on_cancel(loop_handle.cancel)
        return handle

    def call_every(self, period: float, callback: Callback) -> TimerHandle:
        if period <= 0:
            raise ValueError("period must be positive")
        handle = TimerHandle(period, period)
        current = {}

        def fire():
            if handle.cancelled:
                return
            current["handle"] = self.loop.call_later(period, fire)
            _run_callback(callback)

        current["handle"] = self.loop.call_later(period, fire)
        handle._on_cancel(lambda: current["handle"].cancel())
        return handle


class ManualScheduler(Scheduler):
    """
    Virtual-time scheduler.

    Time only moves when advance() is called; due callbacks fire in
    deadline order with the clock set to their deadline.
    """

    def __init__(self, start: float = 0.0):
        self._now = start
        self._counter = itertools.count()
        self._queue: List[Tuple[float, int, TimerHandle, Callback]] = []

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callback) -> TimerHandle:
        handle = TimerHandle(delay)
        self._push(self._now + max(0.0, delay), handle, callback)
        return handle

    def call_every(self, period: float, callback: Callback) -> TimerHandle:
        if period <= 0:
            raise ValueError("period must be positive")
        handle = TimerHandle(period, period)
        self._push(self._now + period, handle, callback)
        return handle

    def advance(self, seconds: float) -> int:
        """
        Move the clock forward, firing everything that becomes due.

        Returns:
            Number of callbacks fired
        """
        target = self._now + seconds
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, handle, callback = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = due
            if handle.periodic:
                self._push(due + handle.period, handle, callback)
            _run_callback(callback)
            fired += 1
        self._now = target
        return fired

    def pending(self) -> List[TimerHandle]:
        """Live handles still waiting to fire."""
        return [entry[2] for entry in self._queue if not entry[2].cancelled]

    def _push(self, due: float, handle: TimerHandle, callback: Callback):
        heapq.heappush(self._queue, (due, next(self._counter), handle, callback))
