# Deliberation replay engine
from .event_log import (
    EventLog,
    ReplayError,
    InvalidSessionError,
    IndexOutOfRangeError,
)
from .player import (
    TimelinePlayer,
    PlayerState,
    PlaybackSpeed,
    DEFAULT_BASE_PERIOD_MS,
)
from .timeline import (
    TimelineEntry,
    build_timeline,
    format_duration,
    format_timestamp,
    summarize_event,
    marker_for,
)
from .session import ReplaySessionController

__all__ = [
    "EventLog",
    "ReplayError",
    "InvalidSessionError",
    "IndexOutOfRangeError",
    "TimelinePlayer",
    "PlayerState",
    "PlaybackSpeed",
    "DEFAULT_BASE_PERIOD_MS",
    "TimelineEntry",
    "build_timeline",
    "format_duration",
    "format_timestamp",
    "summarize_event",
    "marker_for",
    "ReplaySessionController",
]
