"""
Timeline player for deliberation replay.

Provides index-based playback over an EventLog with play/pause/seek/speed
control, and merges live events pushed while the session is open.
"""

from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Union
import asyncio
import logging
import math

from ..shared.protocol import DeliberationEvent
from .event_log import EventLog, InvalidSessionError

logger = logging.getLogger(__name__)


DEFAULT_BASE_PERIOD_MS = 2000


class PlaybackSpeed(Enum):
    """Playback speeds offered by the transport controls."""
    HALF = 0.5
    NORMAL = 1.0
    ONE_AND_HALF = 1.5
    DOUBLE = 2.0


class PlayerState(Enum):
    """Timeline player state."""
    EMPTY = "empty"
    PAUSED = "paused"
    PLAYING = "playing"
    ENDED = "ended"


# Anything with asyncio's call_later(delay, callback, *args) -> handle.cancel()
Scheduler = Any
PlayerCallback = Callable[["TimelinePlayer"], None]


class TimelinePlayer:
    """
    Controllable playback over one session's EventLog.

    Features:
    - Index-based stepping on a periodic timer
    - Pause/resume/seek, seek clamped to the log bounds
    - Speed changes applied by atomically re-arming the timer
    - Live event reconciliation (follow the live edge, never move a reviewer)

    Each armed timer carries a generation number. Cancelling bumps the
    generation, so a tick that was already queued for old state is ignored.
    """

    def __init__(
        self,
        event_log: EventLog,
        total_duration_ms: int,
        base_period_ms: int = DEFAULT_BASE_PERIOD_MS,
        speed_multiplier: float = 1.0,
        scheduler: Optional[Scheduler] = None,
    ):
        self.event_log = event_log
        self.total_duration_ms = total_duration_ms
        self.base_period_ms = base_period_ms
        self.speed_multiplier = speed_multiplier if speed_multiplier > 0 else 1.0

        self._scheduler = scheduler
        self._timer = None
        self._timer_generation = 0

        self.position = 0 if len(event_log) > 0 else -1
        self._state = PlayerState.PAUSED if len(event_log) > 0 else PlayerState.EMPTY
        self._disposed = False

        self._listeners: List[PlayerCallback] = []
        self._ended_callbacks: List[PlayerCallback] = []

    # ==================== Read-only projection ====================

    @property
    def session_id(self) -> str:
        return self.event_log.session_id

    @property
    def state(self) -> PlayerState:
        return self._state

    @property
    def length(self) -> int:
        return len(self.event_log)

    @property
    def is_playing(self) -> bool:
        return self._state == PlayerState.PLAYING

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    @property
    def current_event(self) -> Optional[DeliberationEvent]:
        if self.position < 0:
            return None
        return self.event_log.at(self.position)

    @property
    def at_live_edge(self) -> bool:
        return self.length > 0 and self.position == self.length - 1

    @property
    def has_more(self) -> bool:
        """Whether playback can advance past the current position."""
        return 0 <= self.position < self.length - 1

    @property
    def progress_ratio(self) -> float:
        """Current event timestamp over session duration, clamped to [0, 1]."""
        event = self.current_event
        if event is None or self.total_duration_ms <= 0:
            return 0.0
        ratio = event.timestamp_ms / self.total_duration_ms
        return max(0.0, min(1.0, ratio))

    @property
    def tick_interval_ms(self) -> float:
        return self.base_period_ms / self.speed_multiplier

    def visible_events(self) -> List[DeliberationEvent]:
        """Events revealed so far, up to and including the current position."""
        return self.event_log.slice_through(self.position)

    def to_dict(self) -> Dict[str, Any]:
        """Snapshot for API responses."""
        event = self.current_event
        return {
            "session_id": self.session_id,
            "state": self._state.value,
            "position": self.position,
            "length": self.length,
            "is_playing": self.is_playing,
            "speed": self.speed_multiplier,
            "progress": self.progress_ratio,
            "total_duration_ms": self.total_duration_ms,
            "current_event": event.to_dict() if event else None,
        }

    # ==================== Commands ====================

    def initialize(self, session_id: str, events: Iterable[DeliberationEvent]) -> bool:
        """
        Load the session's recorded events, replacing the log contents.

        A response for a different session is rejected and logged.
        """
        if self._disposed:
            logger.debug(f"Ignoring initialize on disposed player {self.session_id}")
            return False

        try:
            self.event_log.initialize(session_id, events)
        except InvalidSessionError as e:
            logger.warning(f"Rejected stale session data: {e}")
            return False

        self._cancel_timer()
        if self.length > 0:
            self.position = 0
            self._state = PlayerState.PAUSED
        else:
            self.position = -1
            self._state = PlayerState.EMPTY

        logger.info(f"Loaded session {session_id}: {self.length} events")
        self._notify()
        return True

    def play(self):
        """Start or resume playback."""
        if self._disposed or self._state in (PlayerState.EMPTY, PlayerState.PLAYING):
            return

        if not (self.position < self.length - 1 or self.length == 1):
            logger.debug(f"Nothing left to play in session {self.session_id}")
            return

        self._state = PlayerState.PLAYING
        self._arm_timer()

        logger.info(f"Started playback for session {self.session_id} at {self.position}")
        self._notify()

    def pause(self):
        """Pause playback."""
        if self._disposed or self._state != PlayerState.PLAYING:
            return

        self._cancel_timer()
        self._state = PlayerState.PAUSED

        logger.info(f"Paused playback for session {self.session_id} at {self.position}")
        self._notify()

    def toggle(self):
        if self.is_playing:
            self.pause()
        else:
            self.play()

    def seek(self, index: int):
        """
        Move to an event index, clamped to [0, length-1].

        Playing stays playing from the new position, paused stays paused.
        """
        if self._disposed or self._state == PlayerState.EMPTY:
            return

        target = max(0, min(int(index), self.length - 1))

        if target == self.position:
            if self._state == PlayerState.ENDED:
                self._state = PlayerState.PAUSED
                self._notify()
            return

        self.position = target

        if self._state == PlayerState.PLAYING:
            # Restart the period from the new position
            self._arm_timer()
        else:
            self._state = PlayerState.PAUSED

        logger.debug(f"Seeked session {self.session_id} to {target}")
        self._notify()

    def step_forward(self):
        self.seek(self.position + 1)

    def step_back(self):
        self.seek(self.position - 1)

    def seek_start(self):
        self.seek(0)

    def seek_end(self):
        self.seek(self.length - 1)

    def set_speed(self, multiplier: Union[float, PlaybackSpeed]):
        """Set playback speed; takes effect from the next tick."""
        if isinstance(multiplier, PlaybackSpeed):
            multiplier = multiplier.value

        if self._disposed or self._state == PlayerState.EMPTY:
            return

        if multiplier is None or not math.isfinite(multiplier) or multiplier <= 0:
            logger.warning(f"Ignoring invalid speed {multiplier!r} for session {self.session_id}")
            return

        if multiplier == self.speed_multiplier:
            return

        self.speed_multiplier = float(multiplier)

        if self._state == PlayerState.PLAYING:
            self._arm_timer()

        logger.info(f"Set speed for session {self.session_id} to {self.speed_multiplier}x")
        self._notify()

    def on_live_event(self, event: DeliberationEvent, session_id: Optional[str] = None) -> bool:
        """
        Merge an event pushed from the live channel.

        The event always goes to the tail. Position follows it only when
        playing at the live edge; a user reviewing history is not moved.

        Returns:
            True if the event was appended
        """
        if self._disposed:
            logger.debug(f"Dropping live event {event.id} for disposed player {self.session_id}")
            return False

        was_following = self._state == PlayerState.PLAYING and self.at_live_edge

        try:
            self.event_log.append(event, session_id=session_id)
        except InvalidSessionError as e:
            logger.warning(f"Rejected live event {event.id}: {e}")
            return False

        if self._state == PlayerState.EMPTY:
            self.position = 0
            self._state = PlayerState.PAUSED
        elif was_following:
            self.position += 1

        logger.debug(
            f"Live event {event.id} appended to {self.session_id} "
            f"(length={self.length}, position={self.position})"
        )
        self._notify()
        return True

    def dispose(self):
        """Cancel the timer and make the player inert."""
        if self._disposed:
            return

        self._cancel_timer()
        if self._state in (PlayerState.PLAYING, PlayerState.ENDED):
            self._state = PlayerState.PAUSED
        self._disposed = True
        self._listeners.clear()
        self._ended_callbacks.clear()

        logger.debug(f"Disposed player for session {self.session_id}")

    # ==================== Callbacks ====================

    def add_listener(self, callback: PlayerCallback):
        """Called after every observable change."""
        self._listeners.append(callback)

    def remove_listener(self, callback: PlayerCallback):
        if callback in self._listeners:
            self._listeners.remove(callback)

    def add_ended_callback(self, callback: PlayerCallback):
        """Called once each time playback runs off the end."""
        self._ended_callbacks.append(callback)

    def _notify(self):
        for callback in list(self._listeners):
            try:
                callback(self)
            except Exception as e:
                logger.error(f"Player listener error: {e}")

    def _notify_ended(self):
        for callback in list(self._ended_callbacks):
            try:
                callback(self)
            except Exception as e:
                logger.error(f"Ended callback error: {e}")

    # ==================== Timer ====================

    def _get_scheduler(self) -> Scheduler:
        if self._scheduler is None:
            self._scheduler = asyncio.get_running_loop()
        return self._scheduler

    def _arm_timer(self):
        """Cancel any pending tick and schedule the next one."""
        self._cancel_timer()
        generation = self._timer_generation
        self._timer = self._get_scheduler().call_later(
            self.tick_interval_ms / 1000.0,
            self._on_tick,
            generation,
        )

    def _cancel_timer(self):
        self._timer_generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_tick(self, generation: int):
        if generation != self._timer_generation or self._state != PlayerState.PLAYING:
            return

        self._timer = None

        if self.position >= self.length - 1:
            self.position = self.length - 1
            self._timer_generation += 1
            self._state = PlayerState.ENDED
            logger.info(f"Playback ended for session {self.session_id}")
            self._notify()
            self._notify_ended()
            return

        self.position += 1
        self._arm_timer()
        self._notify()
