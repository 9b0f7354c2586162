"""
Shared protocol definitions for Council Replay.

Defines the deliberation event variants recorded for a council session and
the session metadata returned by the council API.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional
import json


class EventKind(Enum):
    STATEMENT = "statement"
    DISSENT = "dissent"
    VOTE = "vote"
    CONSENSUS = "consensus"
    ROUND_CHANGE = "round_change"
    CITATION = "citation"


@dataclass(frozen=True)
class DeliberationEvent:
    """Base for one immutable, timestamped unit of deliberation activity."""
    id: str
    timestamp_ms: int

    kind: ClassVar[EventKind]

    def __post_init__(self):
        if self.timestamp_ms < 0:
            raise ValueError(f"Event {self.id} has negative timestamp {self.timestamp_ms}")

    def payload(self) -> Dict[str, Any]:
        """Kind-specific fields in wire form."""
        return {}

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "timestamp": self.timestamp_ms,
            "type": self.kind.value,
        }
        data.update({k: v for k, v in self.payload().items() if v is not None})
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass(frozen=True)
class StatementEvent(DeliberationEvent):
    content: str
    agent_name: Optional[str] = None
    agent_role: Optional[str] = None
    confidence: Optional[int] = None  # 0-100

    kind: ClassVar[EventKind] = EventKind.STATEMENT

    def payload(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "agentName": self.agent_name,
            "agentRole": self.agent_role,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class DissentEvent(DeliberationEvent):
    content: str
    agent_name: Optional[str] = None
    agent_role: Optional[str] = None

    kind: ClassVar[EventKind] = EventKind.DISSENT

    def payload(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "agentName": self.agent_name,
            "agentRole": self.agent_role,
        }


@dataclass(frozen=True)
class CitationEvent(DeliberationEvent):
    content: str
    agent_name: Optional[str] = None
    agent_role: Optional[str] = None
    source: Optional[str] = None

    kind: ClassVar[EventKind] = EventKind.CITATION

    def payload(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "agentName": self.agent_name,
            "agentRole": self.agent_role,
            "source": self.source,
        }


@dataclass(frozen=True)
class VoteEvent(DeliberationEvent):
    content: str

    kind: ClassVar[EventKind] = EventKind.VOTE

    def payload(self) -> Dict[str, Any]:
        return {"content": self.content}


@dataclass(frozen=True)
class ConsensusEvent(DeliberationEvent):
    content: str

    kind: ClassVar[EventKind] = EventKind.CONSENSUS

    def payload(self) -> Dict[str, Any]:
        return {"content": self.content}


@dataclass(frozen=True)
class RoundChangeEvent(DeliberationEvent):
    content: str

    kind: ClassVar[EventKind] = EventKind.ROUND_CHANGE

    def payload(self) -> Dict[str, Any]:
        return {"content": self.content}


EVENT_TYPES = {
    EventKind.STATEMENT: StatementEvent,
    EventKind.DISSENT: DissentEvent,
    EventKind.CITATION: CitationEvent,
    EventKind.VOTE: VoteEvent,
    EventKind.CONSENSUS: ConsensusEvent,
    EventKind.ROUND_CHANGE: RoundChangeEvent,
}


def _pick(data: dict, *keys, default=None):
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return default


def event_from_dict(data: Dict[str, Any]) -> DeliberationEvent:
    """
    Build the matching event variant from its wire form.

    Accepts the camelCase keys used on the wire as well as snake_case.

    Raises:
        ValueError: unknown event type, or missing id/timestamp
    """
    kind_value = _pick(data, "type", "kind")
    try:
        kind = EventKind(kind_value)
    except ValueError:
        raise ValueError(f"Unknown event type: {kind_value!r}")

    event_id = _pick(data, "id")
    timestamp = _pick(data, "timestamp", "timestampMs", "timestamp_ms")
    if event_id is None or timestamp is None:
        raise ValueError(f"Event is missing id or timestamp: {data!r}")

    common = {"id": str(event_id), "timestamp_ms": int(timestamp)}
    content = _pick(data, "content", default="")

    if kind in (EventKind.VOTE, EventKind.CONSENSUS, EventKind.ROUND_CHANGE):
        return EVENT_TYPES[kind](content=content, **common)

    agent = {
        "agent_name": _pick(data, "agentName", "agent_name"),
        "agent_role": _pick(data, "agentRole", "agent_role"),
    }

    if kind == EventKind.STATEMENT:
        confidence = _pick(data, "confidence")
        return StatementEvent(
            content=content,
            confidence=int(confidence) if confidence is not None else None,
            **agent,
            **common,
        )
    elif kind == EventKind.DISSENT:
        return DissentEvent(content=content, **agent, **common)
    else:
        return CitationEvent(content=content, source=_pick(data, "source"), **agent, **common)


@dataclass
class SessionSummary:
    """Listing entry for one recorded council deliberation."""
    id: str
    title: str
    description: str = ""
    duration_ms: int = 0
    frame_count: int = 0
    agent_count: int = 0
    outcome: str = ""
    consensus_reached: bool = False
    created_at: Optional[datetime] = None
    council_mode: str = "deliberation"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "duration_ms": self.duration_ms,
            "frame_count": self.frame_count,
            "agent_count": self.agent_count,
            "outcome": self.outcome,
            "consensus_reached": self.consensus_reached,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "council_mode": self.council_mode,
        }


@dataclass
class SessionDetail:
    """A recorded session as fetched for replay."""
    session_id: str
    total_duration_ms: int
    events: List[DeliberationEvent] = field(default_factory=list)
    summary: Optional[SessionSummary] = None
