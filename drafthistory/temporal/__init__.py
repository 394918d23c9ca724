"""
Temporal Layer
==============

Injectable time source shared by the commit store and the timeline.
"""

from .clock import Clock, ClockExhausted, LogicalClock

__all__ = [
    'Clock',
    'ClockExhausted',
    'LogicalClock',
]
