"""
Clock Tests
===========

INVARIANTS TESTED:
1. Live ticks are recorded and replay returns them in order
2. Replay fails loudly when it runs out of ticks
3. The manual clock only moves forward
4. The system clock keeps no state between calls
"""

import pytest
from datetime import datetime, timedelta, timezone

from headguard.temporal.clock import ClockExhausted, LogicalClock, ManualClock, SystemClock


class TestLogicalClock:

    def test_live_ticks_are_recorded(self):
        clock = LogicalClock.live()
        first = clock.now()
        second = clock.now()
        assert clock.is_live()
        assert clock.tick_count() == 2
        assert second >= first

    def test_replay_returns_recorded_ticks(self, tmp_path):
        live = LogicalClock.live()
        recorded = [live.now(), live.now(), live.now()]

        log_path = tmp_path / "ticks" / "session.json"
        live.save_log(log_path)

        replay = LogicalClock.from_log(log_path)
        assert not replay.is_live()
        assert [replay.now() for _ in recorded] == recorded

    def test_replay_exhaustion(self):
        clock = LogicalClock.replaying([datetime(2024, 1, 1, tzinfo=timezone.utc)])
        clock.now()
        with pytest.raises(ClockExhausted):
            clock.now()


class TestManualClock:

    def test_starts_where_told(self):
        start = datetime(2024, 5, 1, 12, tzinfo=timezone.utc)
        assert ManualClock(start).now().value == start

    def test_advance(self):
        clock = ManualClock(datetime(2024, 5, 1, tzinfo=timezone.utc))
        clock.advance(hours=25, minutes=30)
        assert clock.now().value == datetime(2024, 5, 2, 1, 30, tzinfo=timezone.utc)

    def test_never_moves_backwards(self):
        start = datetime(2024, 5, 1, tzinfo=timezone.utc)
        clock = ManualClock(start)
        with pytest.raises(ValueError):
            clock.advance(hours=-1)
        with pytest.raises(ValueError):
            clock.set(start - timedelta(seconds=1))

    def test_now_is_stable(self):
        clock = ManualClock()
        assert clock.now() == clock.now()


class TestSystemClock:

    def test_holds_no_state_across_calls(self):
        clock = SystemClock()
        for _ in range(1000):
            clock.now()
        assert vars(clock) == {}

    def test_reads_utc(self):
        moment = SystemClock().now()
        assert moment.value.tzinfo is not None
        assert moment.value.utcoffset() == timedelta(0)

    def test_moves_with_wall_time(self):
        clock = SystemClock()
        first = clock.now()
        assert clock.now() >= first
