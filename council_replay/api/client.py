"""
Council API client for recorded deliberation sessions.

Fetches the session list and individual deliberations from the council
backend and maps them onto replay events.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional
import asyncio
import json
import logging

import aiohttp

from ..replay.event_log import ReplayError
from ..shared.protocol import (
    ConsensusEvent,
    DeliberationEvent,
    DissentEvent,
    RoundChangeEvent,
    SessionDetail,
    SessionSummary,
    StatementEvent,
)

logger = logging.getLogger(__name__)


DEFAULT_DURATION_MS = 600000
MESSAGE_SPACING_MS = 60000
MAX_CONTENT_CHARS = 500
MAX_TITLE_CHARS = 100
CONSENSUS_CONFIDENCE = 0.7


class SessionFetchError(ReplayError):
    """Raised when a session or session list cannot be loaded."""


class SessionSource(ABC):
    """Where recorded sessions come from."""

    @abstractmethod
    async def fetch_session(self, session_id: str) -> SessionDetail:
        ...

    @abstractmethod
    async def fetch_session_list(self) -> List[SessionSummary]:
        ...

    async def close(self):
        pass


def _parse_datetime(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000.0)
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.debug(f"Unparseable timestamp: {value!r}")
        return None


def deliberation_duration_ms(deliberation: Dict[str, Any]) -> int:
    """Recorded duration, else completed-started, else the default."""
    if deliberation.get("duration_ms"):
        return int(deliberation["duration_ms"])

    started = _parse_datetime(deliberation.get("started_at"))
    completed = _parse_datetime(deliberation.get("completed_at"))
    if started and completed:
        return max(0, int((completed - started).total_seconds() * 1000))

    return DEFAULT_DURATION_MS


def _parse_outcome(deliberation: Dict[str, Any]) -> str:
    decision = deliberation.get("decision")
    if not decision:
        return deliberation.get("status", "")
    if isinstance(decision, dict):
        return decision.get("outcome") or "Completed"
    try:
        parsed = json.loads(decision)
    except ValueError:
        return str(decision)
    if isinstance(parsed, dict):
        return parsed.get("outcome") or "Completed"
    return str(parsed)


def deliberation_to_summary(deliberation: Dict[str, Any]) -> SessionSummary:
    """Map one entry of the deliberation list onto a session summary."""
    question = deliberation.get("question") or ""
    messages = deliberation.get("deliberation_messages") or deliberation.get("responses") or []
    confidence = deliberation.get("confidence") or 0

    return SessionSummary(
        id=str(deliberation["id"]),
        title=question[:MAX_TITLE_CHARS] or "Council Deliberation",
        description=question,
        duration_ms=deliberation_duration_ms(deliberation),
        frame_count=len(messages) or 1,
        agent_count=deliberation.get("agent_count", 4),
        outcome=_parse_outcome(deliberation),
        consensus_reached=confidence >= CONSENSUS_CONFIDENCE,
        created_at=_parse_datetime(deliberation.get("created_at") or deliberation.get("createdAt")),
        council_mode=deliberation.get("mode") or "deliberation",
    )


def deliberation_to_events(deliberation: Dict[str, Any]) -> List[DeliberationEvent]:
    """
    Map a deliberation's messages onto replay events.

    The recorded messages carry no usable offsets, so they are spaced one
    minute apart after an opening round change. Completed deliberations
    close with a consensus event.
    """
    messages = deliberation.get("deliberation_messages") or deliberation.get("responses") or []

    events: List[DeliberationEvent] = [
        RoundChangeEvent(id="start", timestamp_ms=0, content="Deliberation started"),
    ]

    for i, message in enumerate(messages):
        agents = message.get("agents") or {}
        agent_name = (
            agents.get("name") or message.get("agentName") or message.get("agent_id") or "Agent"
        )
        agent_role = agents.get("role") or message.get("phase") or "Analysis"
        content = (message.get("content") or "")[:MAX_CONTENT_CHARS]
        event_id = str(message.get("id") or f"msg-{i}")
        timestamp_ms = (i + 1) * MESSAGE_SPACING_MS

        if message.get("phase") == "dissent":
            events.append(DissentEvent(
                id=event_id,
                timestamp_ms=timestamp_ms,
                content=content,
                agent_name=agent_name,
                agent_role=agent_role,
            ))
        else:
            confidence = message.get("confidence")
            events.append(StatementEvent(
                id=event_id,
                timestamp_ms=timestamp_ms,
                content=content,
                agent_name=agent_name,
                agent_role=agent_role,
                confidence=int(confidence) if confidence is not None else None,
            ))

    if deliberation.get("status") == "COMPLETED":
        outcome = deliberation.get("decision") or deliberation.get("synthesis") or "Completed"
        events.append(ConsensusEvent(
            id="end",
            timestamp_ms=len(messages) * MESSAGE_SPACING_MS + MESSAGE_SPACING_MS,
            content=f"Decision reached: {outcome}",
        ))

    return events


class CouncilAPIClient(SessionSource):
    """
    REST client for the council deliberation endpoints.

    Endpoints:
    - GET {base_url}/council/deliberations?limit=N
    - GET {base_url}/council/deliberations/{id}
    """

    def __init__(
        self,
        base_url: str,
        timeout_s: float = 10.0,
        list_limit: int = 50,
        api_token: Optional[str] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.list_limit = list_limit
        self.api_token = api_token
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            headers = {}
            if self.api_token:
                headers["Authorization"] = f"Bearer {self.api_token}"
            self._session = aiohttp.ClientSession(
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout_s),
            )
        return self._session

    async def close(self):
        if self._session:
            await self._session.close()

    async def _get_json(self, path: str, params: Optional[dict] = None) -> Dict[str, Any]:
        session = await self._get_session()
        url = f"{self.base_url}{path}"

        try:
            async with session.get(url, params=params) as response:
                if response.status != 200:
                    raise SessionFetchError(f"GET {url} returned {response.status}")
                payload = await response.json()
        except asyncio.TimeoutError as e:
            raise SessionFetchError(f"GET {url} timed out after {self.timeout_s}s") from e
        except (aiohttp.ClientError, ValueError) as e:
            raise SessionFetchError(f"GET {url} failed: {e}") from e

        if not isinstance(payload, dict):
            raise SessionFetchError(f"GET {url} returned {type(payload).__name__}, expected an object")
        return payload

    async def fetch_session_list(self) -> List[SessionSummary]:
        payload = await self._get_json("/council/deliberations", {"limit": self.list_limit})

        if not payload.get("success"):
            raise SessionFetchError(f"Deliberation list unavailable: {payload.get('error', 'unknown error')}")

        summaries = []
        for deliberation in payload.get("deliberations") or []:
            try:
                summaries.append(deliberation_to_summary(deliberation))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed deliberation entry: {e}")

        logger.info(f"Fetched {len(summaries)} deliberation sessions")
        return summaries

    async def fetch_session(self, session_id: str) -> SessionDetail:
        payload = await self._get_json(f"/council/deliberations/{session_id}")

        deliberation = payload.get("deliberation")
        if not payload.get("success") or not deliberation:
            raise SessionFetchError(f"Deliberation {session_id} unavailable")

        events = deliberation_to_events(deliberation)
        detail = SessionDetail(
            session_id=session_id,
            total_duration_ms=deliberation_duration_ms(deliberation),
            events=events,
            summary=deliberation_to_summary({"id": session_id, **deliberation}),
        )

        logger.info(f"Fetched deliberation {session_id}: {len(events)} events")
        return detail
