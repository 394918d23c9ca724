"""
Test Fakes

Deterministic stand-ins for wall-clock time and the event loop.

RULES:
======
1. FakeClock never reads system time
2. ManualScheduler only fires callbacks when a test advances it
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, List, Tuple


# 2023-11-14T22:13:20Z
BASE_MS = 1_700_000_000_000


class FakeClock:
    """Returns `current`, then steps it forward by `step_ms`."""

    def __init__(self, start_ms: int = BASE_MS, step_ms: int = 1000):
        self.current = start_ms
        self.step_ms = step_ms

    def now_ms(self) -> int:
        value = self.current
        self.current += self.step_ms
        return value

    def set(self, value_ms: int) -> None:
        self.current = value_ms


@dataclass
class ScheduledCall:
    due: float
    callback: Callable[..., Any]
    args: Tuple[Any, ...]
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True

    def run(self) -> None:
        self.callback(*self.args)


@dataclass
class ManualScheduler:
    """call_later-compatible scheduler driven by advance()."""
    now: float = 0.0
    calls: List[ScheduledCall] = field(default_factory=list)

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> ScheduledCall:
        call = ScheduledCall(self.now + delay, callback, args)
        self.calls.append(call)
        return call

    @property
    def pending(self) -> List[ScheduledCall]:
        return [c for c in self.calls if not c.cancelled]

    def advance(self, seconds: float) -> int:
        """Move time forward, firing due callbacks in order. Returns how many fired."""
        target = self.now + seconds
        fired = 0
        while True:
            due = sorted(
                (c for c in self.calls if not c.cancelled and c.due <= target),
                key=lambda c: c.due,
            )
            if not due:
                break
            call = due[0]
            self.calls.remove(call)
            self.now = call.due
            call.run()
            fired += 1
        self.now = target
        return fired
