"""
In-memory session source with recorded demo deliberations.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional
import logging

from ..shared.protocol import (
    ConsensusEvent,
    DeliberationEvent,
    DissentEvent,
    RoundChangeEvent,
    SessionDetail,
    SessionSummary,
    StatementEvent,
    VoteEvent,
)
from .client import SessionFetchError, SessionSource

logger = logging.getLogger(__name__)


PEP_TRANSFER_SESSION = SessionSummary(
    id="tr-demo-petrov-transfer",
    title="$2.5M PEP Transfer to Viktor Petrov - Cyprus",
    description="Basel III compliance deliberation for politically exposed person transfer with formal dissent",
    duration_ms=1822000,
    frame_count=9,
    agent_count=4,
    outcome="ESCALATE_WITH_CONDITIONS",
    consensus_reached=False,
    created_at=datetime(2026, 1, 29, 20, 15, tzinfo=timezone.utc),
    council_mode="regulatory-compliance",
)

PEP_TRANSFER_EVENTS: List[DeliberationEvent] = [
    RoundChangeEvent(
        id="tr-1", timestamp_ms=0,
        content="Deliberation initiated: $2.5M PEP Transfer to Viktor Petrov",
    ),
    StatementEvent(
        id="tr-2", timestamp_ms=90000,
        agent_name="CFO Advisor", agent_role="Financial Analysis", confidence=78,
        content=(
            "From a financial perspective, this $2.5M transfer is a routine size for our "
            "institutional clients. The PEP status of Viktor Petrov introduces enhanced scrutiny "
            "under Basel III. Recommendation: proceed once all Basel III documentation is in place."
        ),
    ),
    DissentEvent(
        id="tr-3", timestamp_ms=285000,
        agent_name="Risk Analyzer", agent_role="Risk Assessment",
        content=(
            "FORMAL OBJECTION FILED - PEP exposure combined with cross-border jurisdiction creates "
            "unacceptable regulatory risk. Cumulative risk score: 67%. Block the transfer until a "
            "full 24-hour compliance review is completed."
        ),
    ),
    StatementEvent(
        id="tr-4", timestamp_ms=552000,
        agent_name="Legal Counsel", agent_role="Legal Analysis", confidence=82,
        content=(
            "Basel III PEP requirements partially met, SEC recordkeeping at risk, FINRA AML "
            "requires attention. A 24-hour hold is prudent; same-day execution needs documented "
            "compliance officer approval."
        ),
    ),
    StatementEvent(
        id="tr-5", timestamp_ms=693000,
        agent_name="Compliance Bot", agent_role="Automated Compliance", confidence=91,
        content=(
            "Automated compliance check: OFAC screening pass, PEP database flag, jurisdiction risk "
            "flag (Cyprus), amount threshold flag. Basel III score 62/100, below the 75 threshold. "
            "Recommendation: escalate to a human compliance officer."
        ),
    ),
    StatementEvent(
        id="tr-6", timestamp_ms=960000,
        agent_name="CFO Advisor", agent_role="Financial Analysis", confidence=74,
        content=(
            "Petrov Holdings has been a client for 7 years with no compliance incidents. Proposed "
            "compromise: execute with a compliance hold released after a 24-hour review."
        ),
    ),
    DissentEvent(
        id="tr-7", timestamp_ms=1185000,
        agent_name="Risk Analyzer", agent_role="Risk Assessment",
        content=(
            "DISSENT MAINTAINED - I accept the compromise only if this deliberation is preserved in "
            "the audit trail, my dissent is formally recorded, approval is documented, and enhanced "
            "monitoring runs for at least 90 days."
        ),
    ),
    VoteEvent(
        id="tr-8", timestamp_ms=1620000,
        content="Voting initiated: APPROVE WITH CONDITIONS vs BLOCK",
    ),
    ConsensusEvent(
        id="tr-9", timestamp_ms=1822000,
        content=(
            "Decision: ESCALATE_WITH_CONDITIONS - approve with a 24-hour compliance hold, 90 days of "
            "enhanced monitoring and documented officer approval. Dissent formally recorded."
        ),
    ),
]


class DemoSessionSource(SessionSource):
    """Serves recorded sessions held in memory."""

    def __init__(self, sessions: Optional[Dict[str, SessionDetail]] = None):
        if sessions is None:
            sessions = {
                PEP_TRANSFER_SESSION.id: SessionDetail(
                    session_id=PEP_TRANSFER_SESSION.id,
                    total_duration_ms=PEP_TRANSFER_SESSION.duration_ms,
                    events=list(PEP_TRANSFER_EVENTS),
                    summary=PEP_TRANSFER_SESSION,
                ),
            }
        self.sessions = sessions

    def add_session(self, detail: SessionDetail):
        self.sessions[detail.session_id] = detail

    async def fetch_session_list(self) -> List[SessionSummary]:
        return [
            detail.summary or SessionSummary(
                id=detail.session_id,
                title=detail.session_id,
                duration_ms=detail.total_duration_ms,
                frame_count=len(detail.events),
            )
            for detail in self.sessions.values()
        ]

    async def fetch_session(self, session_id: str) -> SessionDetail:
        detail = self.sessions.get(session_id)
        if detail is None:
            raise SessionFetchError(f"Unknown demo session {session_id}")

        return SessionDetail(
            session_id=detail.session_id,
            total_duration_ms=detail.total_duration_ms,
            events=list(detail.events),
            summary=detail.summary,
        )
