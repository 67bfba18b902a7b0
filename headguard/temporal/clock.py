"""
Injectable Clock
================

Every time read in the engine goes through a clock passed in by the caller.

GUARANTEES:
- Engine operations never read system time implicitly
- Same protocol + same clock sequence = identical results
- SystemClock (the service default) holds no per-call state
- LogicalClock LIVE ticks are recorded so a session can be replayed exactly
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional
from pathlib import Path
import json

from ..contracts.base import Timestamp


class ClockExhausted(Exception):
    """Raised when replay clock runs out of ticks."""
    pass


class Clock:
    """Clock interface: anything with now() -> Timestamp."""

    def now(self) -> Timestamp:
        raise NotImplementedError


@dataclass
class LogicalClock(Clock):
    """
    Wall-clock source that can also replay a recorded session.

    MODES:
    ======
    1. LIVE mode: Uses real system time, logs all ticks
    2. REPLAY mode: Uses pre-recorded tick sequence
    """
    _ticks: List[datetime] = field(default_factory=list)
    _current_index: int = 0
    _is_live: bool = True

    def now(self) -> Timestamp:
        """
        Get current logical time.

        In LIVE mode: reads system time and logs it
        In REPLAY mode: returns next tick from recorded sequence
        """
        if self._is_live:
            current = datetime.now(timezone.utc)
            self._ticks.append(current)
            self._current_index = len(self._ticks)
            return Timestamp(current)

        if self._current_index >= len(self._ticks):
            raise ClockExhausted(
                f"Replay clock exhausted at index {self._current_index}. "
                f"Recorded session had {len(self._ticks)} ticks."
            )
        tick = self._ticks[self._current_index]
        self._current_index += 1
        return Timestamp(tick)

    def tick_count(self) -> int:
        """Number of ticks recorded/consumed."""
        return self._current_index

    def is_live(self) -> bool:
        return self._is_live

    @classmethod
    def live(cls) -> LogicalClock:
        """Create clock in LIVE mode (uses system time)."""
        return cls(_is_live=True)

    @classmethod
    def replaying(cls, ticks: List[datetime]) -> LogicalClock:
        """Create clock in REPLAY mode from an in-memory tick list."""
        return cls(_ticks=list(ticks), _current_index=0, _is_live=False)

    @classmethod
    def from_log(cls, tick_log_path: Path) -> LogicalClock:
        """
        Create clock in REPLAY mode from recorded log.

        Args:
            tick_log_path: Path to JSON file containing tick sequence
        """
        with open(tick_log_path, 'r') as f:
            data = json.load(f)

        return cls.replaying([datetime.fromisoformat(t) for t in data['ticks']])

    def save_log(self, tick_log_path: Path) -> None:
        """Save tick log for future replay."""
        tick_log_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            'version': '1.0',
            'mode': 'live' if self._is_live else 'replay',
            'tick_count': len(self._ticks),
            'ticks': [t.isoformat() for t in self._ticks]
        }

        with open(tick_log_path, 'w') as f:
            json.dump(data, f, indent=2)

    def __repr__(self) -> str:
        mode = "LIVE" if self._is_live else "REPLAY"
        return f"LogicalClock({mode}, ticks={len(self._ticks)}, index={self._current_index})"


class SystemClock(Clock):
    """
    Plain UTC wall clock. Keeps no state between calls.

    Default for long-running services; use LogicalClock.live() only when a
    session has to be recorded for replay.
    """

    def now(self) -> Timestamp:
        return Timestamp.now()

    def __repr__(self) -> str:
        return "SystemClock()"


class ManualClock(Clock):
    """
    Clock that only moves when told to.

    Used by tests and simulations in place of waiting on wall-clock delays.
    """

    def __init__(self, start: Optional[datetime] = None):
        self._current = Timestamp(start or datetime(2024, 1, 1, tzinfo=timezone.utc))

    def now(self) -> Timestamp:
        return self._current

    def advance(self, hours: float = 0.0, minutes: float = 0.0) -> Timestamp:
        """Move forward and return the new time."""
        if hours < 0 or minutes < 0:
            raise ValueError("ManualClock only moves forward")
        self._current = Timestamp(self._current.value + timedelta(hours=hours, minutes=minutes))
        return self._current

    def set(self, moment: datetime) -> Timestamp:
        target = Timestamp(moment)
        if target < self._current:
            raise ValueError("ManualClock only moves forward")
        self._current = target
        return self._current

    def __repr__(self) -> str:
        return f"ManualClock({self._current.to_iso()})"
