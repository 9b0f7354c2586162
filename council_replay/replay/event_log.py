"""
Append-only event log for a single deliberation session.

Array index is the playback order. Timestamps are carried for progress
display only and are never used to reorder the log.
"""

from typing import Iterable, Iterator, List, Optional, Tuple
import logging

from ..shared.protocol import DeliberationEvent

logger = logging.getLogger(__name__)


class ReplayError(Exception):
    """Base error for the replay engine."""


class InvalidSessionError(ReplayError):
    """Raised when data tagged for one session reaches another session's log."""

    def __init__(self, expected: str, received: Optional[str]):
        super().__init__(f"Session mismatch: log belongs to {expected!r}, got {received!r}")
        self.expected = expected
        self.received = received


class IndexOutOfRangeError(ReplayError, IndexError):
    """Raised on reads outside [0, length)."""


class EventLog:
    """
    Ordered, append-only sequence of events for exactly one session.

    Holds no playback state.
    """

    def __init__(self, session_id: str, events: Iterable[DeliberationEvent] = ()):
        self.session_id = session_id
        self._events: List[DeliberationEvent] = list(events)

    def initialize(self, session_id: str, events: Iterable[DeliberationEvent]):
        """
        Replace the log contents wholesale.

        Raises:
            InvalidSessionError: if session_id is not this log's session
        """
        if session_id != self.session_id:
            raise InvalidSessionError(self.session_id, session_id)

        self._events = list(events)
        logger.debug(f"Initialized log {self.session_id} with {len(self._events)} events")

    def append(self, event: DeliberationEvent, session_id: Optional[str] = None):
        """
        Add an event at the tail. No timestamp ordering check is made.

        Raises:
            InvalidSessionError: if a session tag is given and does not match
        """
        if session_id is not None and session_id != self.session_id:
            raise InvalidSessionError(self.session_id, session_id)

        self._events.append(event)

    def length(self) -> int:
        return len(self._events)

    def at(self, index: int) -> DeliberationEvent:
        """
        Get the event at an index.

        Raises:
            IndexOutOfRangeError: if index is outside [0, length)
        """
        if not 0 <= index < len(self._events):
            raise IndexOutOfRangeError(
                f"Index {index} out of range for log {self.session_id} "
                f"of length {len(self._events)}"
            )
        return self._events[index]

    def last(self) -> Optional[DeliberationEvent]:
        return self._events[-1] if self._events else None

    def slice_through(self, index: int) -> List[DeliberationEvent]:
        """Events from the start up to and including index (clamped)."""
        if index < 0:
            return []
        return self._events[:index + 1]

    @property
    def events(self) -> Tuple[DeliberationEvent, ...]:
        return tuple(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[DeliberationEvent]:
        return iter(tuple(self._events))

    def __repr__(self) -> str:
        return f"EventLog(session_id={self.session_id!r}, length={len(self._events)})"
