"""
Shared test fixtures for Council Replay tests.
"""

import pytest
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from council_replay.replay.event_log import EventLog
from council_replay.replay.player import TimelinePlayer
from council_replay.shared.protocol import (
    DissentEvent,
    RoundChangeEvent,
    StatementEvent,
    VoteEvent,
)


class ManualTimerHandle:
    def __init__(self, when, callback, args):
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """
    Stand-in for the event loop's call_later that only fires on advance().
    """

    def __init__(self):
        self.now = 0.0
        self._handles = []

    def call_later(self, delay, callback, *args):
        handle = ManualTimerHandle(self.now + delay, callback, args)
        self._handles.append(handle)
        return handle

    @property
    def pending(self):
        return [h for h in self._handles if not h.cancelled]

    def next_delay(self):
        pending = self.pending
        if not pending:
            return None
        return min(h.when for h in pending) - self.now

    def advance(self, seconds):
        """Move the clock forward, firing every callback that comes due."""
        target = self.now + seconds
        while True:
            due = [h for h in self.pending if h.when <= target + 1e-9]
            if not due:
                break
            handle = min(due, key=lambda h: h.when)
            self._handles.remove(handle)
            self.now = handle.when
            handle.callback(*handle.args)
        self.now = target

    def fire_next(self):
        """Jump to and fire the earliest pending callback."""
        delay = self.next_delay()
        if delay is None:
            return False
        self.advance(max(delay, 0.0))
        return True

    def run_until_idle(self, max_steps=1000):
        steps = 0
        while self.fire_next():
            steps += 1
            if steps >= max_steps:
                raise RuntimeError("Scheduler did not go idle")
        return steps


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def make_events():
    """Factory for statement events with the given timestamps."""
    def factory(timestamps, prefix="ev"):
        return [
            StatementEvent(
                id=f"{prefix}-{i}",
                timestamp_ms=ts,
                content=f"Statement {i}",
                agent_name="Agent",
            )
            for i, ts in enumerate(timestamps)
        ]
    return factory


@pytest.fixture
def make_player(scheduler, make_events):
    """Factory for players over a fresh log, driven by the manual scheduler."""
    def factory(timestamps=None, count=None, session_id="session-a", total_duration_ms=300000, **kwargs):
        if timestamps is None:
            timestamps = [i * 1000 for i in range(count or 0)]
        log = EventLog(session_id, make_events(timestamps, prefix=session_id))
        return TimelinePlayer(
            log,
            total_duration_ms=total_duration_ms,
            scheduler=scheduler,
            **kwargs,
        )
    return factory


@pytest.fixture
def sample_deliberation_events():
    """A short deliberation mixing every common kind."""
    return [
        RoundChangeEvent(id="r1", timestamp_ms=0, content="Round 1 begins"),
        StatementEvent(
            id="s1",
            timestamp_ms=90000,
            content="Proceed once documentation is complete.",
            agent_name="CFO Advisor",
            agent_role="Financial Analysis",
            confidence=78,
        ),
        DissentEvent(
            id="d1",
            timestamp_ms=285000,
            content="Formal objection: regulatory risk is unacceptable.",
            agent_name="Risk Analyzer",
            agent_role="Risk Assessment",
        ),
        VoteEvent(id="v1", timestamp_ms=290000, content="Voting initiated"),
    ]
