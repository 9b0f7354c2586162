"""
Tests for the council API client and session sources.
"""

import asyncio
import json
from contextlib import asynccontextmanager

import pytest
from aiohttp import test_utils, web
from unittest.mock import AsyncMock

from council_replay.api.client import (
    CouncilAPIClient,
    DEFAULT_DURATION_MS,
    SessionFetchError,
    deliberation_duration_ms,
    deliberation_to_events,
    deliberation_to_summary,
)
from council_replay.api.demo import DemoSessionSource, PEP_TRANSFER_SESSION
from council_replay.shared.protocol import EventKind


@pytest.fixture
def sample_deliberation():
    return {
        "id": "delib-42",
        "question": "Should we approve the Q1 budget reallocation?",
        "status": "COMPLETED",
        "decision": json.dumps({"outcome": "Approved with modifications"}),
        "confidence": 0.82,
        "mode": "strategic-planning",
        "created_at": "2026-01-29T20:15:00Z",
        "started_at": "2026-01-29T20:15:00Z",
        "completed_at": "2026-01-29T20:29:07Z",
        "deliberation_messages": [
            {
                "id": "m1",
                "content": "Revenue supports the shift.",
                "phase": "analysis",
                "confidence": 80,
                "agents": {"name": "CFO Advisor", "role": "Financial Analysis"},
            },
            {
                "id": "m2",
                "content": "x" * 800,
                "phase": "dissent",
                "agentName": "Risk Analyzer",
            },
            {
                "content": "Agreed with conditions.",
                "agent_id": "legal-1",
            },
        ],
    }


class TestDeliberationMapping:
    """Tests for mapping backend deliberations onto replay events."""

    def test_events_layout(self, sample_deliberation):
        events = deliberation_to_events(sample_deliberation)

        assert [e.kind for e in events] == [
            EventKind.ROUND_CHANGE,
            EventKind.STATEMENT,
            EventKind.DISSENT,
            EventKind.STATEMENT,
            EventKind.CONSENSUS,
        ]
        assert [e.timestamp_ms for e in events] == [0, 60000, 120000, 180000, 240000]

    def test_message_fields(self, sample_deliberation):
        events = deliberation_to_events(sample_deliberation)

        assert events[1].agent_name == "CFO Advisor"
        assert events[1].agent_role == "Financial Analysis"
        assert events[1].confidence == 80
        assert events[2].agent_name == "Risk Analyzer"
        assert len(events[2].content) == 500
        assert events[3].id == "msg-2"
        assert events[3].agent_name == "legal-1"
        assert events[3].agent_role == "Analysis"

    def test_incomplete_deliberation_has_no_consensus(self, sample_deliberation):
        sample_deliberation["status"] = "IN_PROGRESS"

        events = deliberation_to_events(sample_deliberation)

        assert events[-1].kind == EventKind.STATEMENT

    def test_summary(self, sample_deliberation):
        summary = deliberation_to_summary(sample_deliberation)

        assert summary.id == "delib-42"
        assert summary.title.startswith("Should we approve")
        assert summary.outcome == "Approved with modifications"
        assert summary.consensus_reached is True
        assert summary.frame_count == 3
        assert summary.council_mode == "strategic-planning"
        assert summary.created_at.year == 2026

    def test_duration_from_timestamps(self, sample_deliberation):
        assert deliberation_duration_ms(sample_deliberation) == 847000

    def test_duration_prefers_recorded_value(self, sample_deliberation):
        sample_deliberation["duration_ms"] = 1000
        assert deliberation_duration_ms(sample_deliberation) == 1000

    def test_duration_default(self):
        assert deliberation_duration_ms({}) == DEFAULT_DURATION_MS

    def test_summary_without_decision_uses_status(self):
        summary = deliberation_to_summary({"id": 7, "status": "RUNNING"})

        assert summary.id == "7"
        assert summary.title == "Council Deliberation"
        assert summary.outcome == "RUNNING"
        assert summary.consensus_reached is False


class TestCouncilAPIClient:
    """Tests for the REST client with the HTTP layer mocked out."""

    @pytest.fixture
    def client(self):
        return CouncilAPIClient(base_url="http://council.test/api/v1/")

    def test_base_url_normalized(self, client):
        assert client.base_url == "http://council.test/api/v1"

    @pytest.mark.asyncio
    async def test_fetch_session(self, client, sample_deliberation):
        client._get_json = AsyncMock(return_value={"success": True, "deliberation": sample_deliberation})

        detail = await client.fetch_session("delib-42")

        client._get_json.assert_awaited_once_with("/council/deliberations/delib-42")
        assert detail.session_id == "delib-42"
        assert detail.total_duration_ms == 847000
        assert len(detail.events) == 5
        assert detail.summary.outcome == "Approved with modifications"

    @pytest.mark.asyncio
    async def test_fetch_session_unsuccessful(self, client):
        client._get_json = AsyncMock(return_value={"success": False})

        with pytest.raises(SessionFetchError):
            await client.fetch_session("delib-42")

    @pytest.mark.asyncio
    async def test_fetch_session_list(self, client, sample_deliberation):
        client._get_json = AsyncMock(return_value={
            "success": True,
            "deliberations": [sample_deliberation, {"question": "no id"}],
        })

        summaries = await client.fetch_session_list()

        client._get_json.assert_awaited_once_with("/council/deliberations", {"limit": 50})
        assert [s.id for s in summaries] == ["delib-42"]

    @pytest.mark.asyncio
    async def test_fetch_session_list_unsuccessful(self, client):
        client._get_json = AsyncMock(return_value={"success": False, "error": "maintenance"})

        with pytest.raises(SessionFetchError, match="maintenance"):
            await client.fetch_session_list()


class TestDemoSessionSource:
    """Tests for the in-memory demo source."""

    @pytest.mark.asyncio
    async def test_lists_demo_session(self):
        source = DemoSessionSource()

        summaries = await source.fetch_session_list()

        assert [s.id for s in summaries] == [PEP_TRANSFER_SESSION.id]

    @pytest.mark.asyncio
    async def test_fetch_returns_independent_copy(self):
        source = DemoSessionSource()

        first = await source.fetch_session(PEP_TRANSFER_SESSION.id)
        first.events.clear()
        second = await source.fetch_session(PEP_TRANSFER_SESSION.id)

        assert len(second.events) == 9
        assert second.total_duration_ms == 1822000
        assert second.events[-1].kind == EventKind.CONSENSUS

    @pytest.mark.asyncio
    async def test_unknown_session(self):
        source = DemoSessionSource()

        with pytest.raises(SessionFetchError):
            await source.fetch_session("nope")


@asynccontextmanager
async def serve(routes):
    app = web.Application()
    app.add_routes(routes)
    server = test_utils.TestServer(app)
    await server.start_server()
    try:
        yield server
    finally:
        await server.close()


class TestCouncilAPIClientOverHTTP:
    """Tests for the REST client against a local aiohttp server."""

    @pytest.mark.asyncio
    async def test_fetch_session(self, sample_deliberation):
        async def deliberation(request):
            return web.json_response({"success": True, "deliberation": sample_deliberation})

        async with serve([web.get("/api/v1/council/deliberations/delib-42", deliberation)]) as server:
            client = CouncilAPIClient(base_url=str(server.make_url("/api/v1")))
            try:
                detail = await client.fetch_session("delib-42")
            finally:
                await client.close()

        assert detail.session_id == "delib-42"
        assert len(detail.events) == 5

    @pytest.mark.asyncio
    async def test_slow_backend_times_out(self):
        async def slow(request):
            await asyncio.sleep(0.5)
            return web.json_response({"success": True})

        async with serve([web.get("/api/v1/council/deliberations/slow", slow)]) as server:
            client = CouncilAPIClient(base_url=str(server.make_url("/api/v1")), timeout_s=0.05)
            try:
                with pytest.raises(SessionFetchError, match="timed out"):
                    await client.fetch_session("slow")
            finally:
                await client.close()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        lambda: web.json_response([{"success": True}]),
        lambda: web.Response(text="<html>down</html>", content_type="application/json"),
        lambda: web.json_response({"error": "boom"}, status=500),
    ])
    async def test_bad_responses_raise_fetch_error(self, response):
        async def listing(request):
            return response()

        async with serve([web.get("/api/v1/council/deliberations", listing)]) as server:
            client = CouncilAPIClient(base_url=str(server.make_url("/api/v1")))
            try:
                with pytest.raises(SessionFetchError):
                    await client.fetch_session_list()
            finally:
                await client.close()
