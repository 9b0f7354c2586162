from .protocol import (
    EventKind,
    DeliberationEvent,
    StatementEvent,
    DissentEvent,
    CitationEvent,
    VoteEvent,
    ConsensusEvent,
    RoundChangeEvent,
    EVENT_TYPES,
    event_from_dict,
    SessionSummary,
    SessionDetail,
)

__all__ = [
    "EventKind",
    "DeliberationEvent",
    "StatementEvent",
    "DissentEvent",
    "CitationEvent",
    "VoteEvent",
    "ConsensusEvent",
    "RoundChangeEvent",
    "EVENT_TYPES",
    "event_from_dict",
    "SessionSummary",
    "SessionDetail",
]
