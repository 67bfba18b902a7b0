"""
Temporal Layer
==============

Injectable time sources. Eligibility is computed from timestamps read
through these clocks, never from timers.
"""

from .clock import Clock, ClockExhausted, LogicalClock, ManualClock, SystemClock

__all__ = [
    'Clock',
    'ClockExhausted',
    'LogicalClock',
    'ManualClock',
    'SystemClock',
]
