"""
Logical Clock for Deterministic Timestamps
==========================================

Injectable clock used for every commit, node and export timestamp.

GUARANTEES:
- Same inputs + same clock sequence = identical commit history
- Never reads system time implicitly in replay mode
- A recording live clock keeps every tick so a session can be replayed;
  the default live clock keeps none, so long sessions stay bounded
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Protocol, Sequence, runtime_checkable


class ClockExhausted(Exception):
    """Raised when replay clock runs out of ticks."""
    pass


@runtime_checkable
class Clock(Protocol):
    """Anything that can report the current time in epoch milliseconds."""

    def now_ms(self) -> int:
        ...


@dataclass
class LogicalClock:
    """
    Injectable millisecond clock.

    MODES:
    ======
    1. LIVE mode: Uses real system time, records ticks only if `record`
    2. REPLAY mode: Uses a pre-recorded tick sequence
    """
    _ticks: List[int] = field(default_factory=list)
    _current_index: int = 0
    _is_live: bool = True
    _record: bool = False
    _start_ms: Optional[int] = None

    def now_ms(self) -> int:
        """
        Get current logical time in epoch milliseconds.

        In LIVE mode: reads system time (and records it when recording)
        In REPLAY mode: returns next tick from recorded sequence
        """
        if self._is_live:
            current = int(datetime.now(timezone.utc).timestamp() * 1000)
            if self._start_ms is None:
                self._start_ms = current
            if self._record:
                self._ticks.append(current)
            self._current_index += 1
            return current

        if self._current_index >= len(self._ticks):
            raise ClockExhausted(
                f"Replay clock exhausted at index {self._current_index}. "
                f"Original execution had {len(self._ticks)} ticks."
            )
        tick = self._ticks[self._current_index]
        self._current_index += 1
        return tick

    def tick_count(self) -> int:
        """Number of ticks recorded/consumed."""
        return self._current_index

    def is_live(self) -> bool:
        return self._is_live

    def recorded_ticks(self) -> List[int]:
        """Copy of the tick sequence, suitable for LogicalClock.replay."""
        return list(self._ticks)

    @property
    def start_ms(self) -> Optional[int]:
        if self._is_live:
            return self._start_ms
        return self._ticks[0] if self._ticks else None

    @classmethod
    def live(cls, record: bool = False) -> LogicalClock:
        """Create clock in LIVE mode (uses system time). `record` keeps ticks for replay."""
        return cls(_is_live=True, _record=record)

    @classmethod
    def replay(cls, ticks: Sequence[int]) -> LogicalClock:
        """Create clock in REPLAY mode from a recorded tick sequence."""
        return cls(_ticks=list(ticks), _current_index=0, _is_live=False)

    def __repr__(self) -> str:
        mode = "LIVE" if self._is_live else "REPLAY"
        return f"LogicalClock({mode}, recorded={len(self._ticks)}, index={self._current_index})"
