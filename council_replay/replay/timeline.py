"""
Timeline display helpers.

Turns the player's log into entries for a timeline sidebar: formatted
offsets, per-kind summaries and marker categories.
"""

from dataclasses import dataclass
from typing import Any, Dict, List

from ..shared.protocol import (
    CitationEvent,
    ConsensusEvent,
    DeliberationEvent,
    DissentEvent,
    EventKind,
    RoundChangeEvent,
    StatementEvent,
    VoteEvent,
)
from .player import TimelinePlayer


# Marker category per event kind
EVENT_MARKERS = {
    EventKind.DISSENT: "dissent",
    EventKind.CONSENSUS: "consensus",
    EventKind.CITATION: "citation",
    EventKind.ROUND_CHANGE: "phase",
    EventKind.STATEMENT: "default",
    EventKind.VOTE: "default",
}

SUMMARY_MAX_CHARS = 120


@dataclass
class TimelineEntry:
    """One row of the timeline sidebar."""
    index: int
    timestamp_ms: int
    offset: str
    kind: EventKind
    label: str
    summary: str
    marker: str
    is_current: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "timestamp": self.timestamp_ms,
            "offset": self.offset,
            "type": self.kind.value,
            "label": self.label,
            "summary": self.summary,
            "marker": self.marker,
            "is_current": self.is_current,
        }


def format_duration(ms: int) -> str:
    """Format a duration as "1h 5m" or "3m 7s"."""
    seconds = int(ms) // 1000
    minutes = seconds // 60
    hours = minutes // 60

    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    return f"{minutes}m {seconds % 60}s"


def format_timestamp(ms: int) -> str:
    """Format an offset as m:ss."""
    seconds = int(ms) // 1000
    minutes = seconds // 60
    return f"{minutes}:{seconds % 60:02d}"


def marker_for(kind: EventKind) -> str:
    return EVENT_MARKERS[kind]


def _truncate(text: str, limit: int = SUMMARY_MAX_CHARS) -> str:
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return text[:limit - 3].rstrip() + "..."


def event_label(event: DeliberationEvent) -> str:
    """Speaker name, or the humanized kind for unattributed events."""
    agent_name = getattr(event, "agent_name", None)
    if agent_name:
        return agent_name
    return event.kind.value.replace("_", " ")


def summarize_event(event: DeliberationEvent) -> str:
    """Generate a one-line, human-readable summary for an event."""
    if isinstance(event, StatementEvent):
        summary = _truncate(event.content)
        if event.confidence is not None:
            summary = f"{summary} ({event.confidence}% confidence)"
        return summary

    elif isinstance(event, DissentEvent):
        return f"Dissent: {_truncate(event.content)}"

    elif isinstance(event, CitationEvent):
        if event.source:
            return f"Cited {event.source}: {_truncate(event.content)}"
        return f"Citation: {_truncate(event.content)}"

    elif isinstance(event, VoteEvent):
        return _truncate(event.content)

    elif isinstance(event, ConsensusEvent):
        return _truncate(event.content)

    elif isinstance(event, RoundChangeEvent):
        return _truncate(event.content)

    raise TypeError(f"Unhandled event type: {type(event).__name__}")


def build_timeline(player: TimelinePlayer) -> List[TimelineEntry]:
    """Timeline entries for every event in the player's log."""
    return [
        TimelineEntry(
            index=index,
            timestamp_ms=event.timestamp_ms,
            offset=format_timestamp(event.timestamp_ms),
            kind=event.kind,
            label=event_label(event),
            summary=summarize_event(event),
            marker=marker_for(event.kind),
            is_current=index == player.position,
        )
        for index, event in enumerate(player.event_log)
    ]
