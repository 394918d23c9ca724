"""
Auto-Commit Timer
=================

Recurring timer owned by a single CommitStore.

GUARANTEES:
- Runs on the caller's event loop, never on another thread
- After stop() returns, no further callback is observable, including a
  callback the loop already dispatched (generation check)
- A failing tick is logged and skipped; the next interval still runs
"""

from __future__ import annotations
import asyncio
from typing import Any, Callable, Optional, Protocol

from loguru import logger


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """The subset of asyncio.AbstractEventLoop the timer needs."""

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        ...


class AutoCommitTimer:
    """Calls `callback` every `interval_seconds` until stopped."""

    def __init__(
        self,
        callback: Callable[[], None],
        interval_seconds: float,
        scheduler: Optional[Scheduler] = None,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._callback = callback
        self._interval = interval_seconds
        self._scheduler = scheduler
        self._handle: Optional[TimerHandle] = None
        self._generation = 0
        self._running = False
        self._tick_count = 0
        self._failure_count = 0

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def failure_count(self) -> int:
        return self._failure_count

    def start(self) -> None:
        self.stop()
        if self._scheduler is None:
            try:
                self._scheduler = asyncio.get_running_loop()
            except RuntimeError as e:
                raise RuntimeError(
                    "AutoCommitTimer needs a running event loop or an explicit scheduler"
                ) from e
        self._running = True
        self._generation += 1
        self._schedule(self._generation)
        logger.debug("Auto-commit timer started ({}s interval)", self._interval)

    def stop(self) -> None:
        was_running = self._running
        self._running = False
        self._generation += 1
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if was_running:
            logger.debug("Auto-commit timer stopped after {} ticks", self._tick_count)

    def _schedule(self, generation: int) -> None:
        self._handle = self._scheduler.call_later(self._interval, self._fire, generation)

    def _fire(self, generation: int) -> None:
        if not self._running or generation != self._generation:
            return
        self.tick()
        # the callback may have stopped or restarted the timer
        if self._running and generation == self._generation:
            self._schedule(generation)

    def tick(self) -> None:
        """Run one check now. Failures are logged, never raised."""
        self._tick_count += 1
        try:
            self._callback()
        except Exception:
            self._failure_count += 1
            logger.exception("Auto-commit tick {} failed; retrying next interval", self._tick_count)
