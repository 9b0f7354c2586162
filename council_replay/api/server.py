"""
FastAPI server for Council Replay.

Exposes the active player's read-only projection and its transport
commands, plus an ingest route that feeds the local live channel.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, Optional
import logging

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from ..replay.session import ReplaySessionController
from ..replay.timeline import build_timeline
from ..shared.protocol import event_from_dict
from .client import SessionFetchError
from .push import LocalPushChannel

logger = logging.getLogger(__name__)


class ControlRequest(BaseModel):
    action: str
    index: Optional[int] = None
    speed: Optional[float] = None


class LiveEventRequest(BaseModel):
    event: Dict[str, Any]


class ReplayAPI:
    """
    API helper for replay functionality.

    Returns plain dicts; failures are reported as {"error": ...}.
    """

    def __init__(
        self,
        controller: ReplaySessionController,
        local_channel: Optional[LocalPushChannel] = None,
    ):
        self.controller = controller
        self.local_channel = local_channel

    async def list_sessions(self) -> Dict[str, Any]:
        try:
            sessions = await self.controller.list_sessions()
        except SessionFetchError as e:
            return {"error": str(e)}
        return {"sessions": [s.to_dict() for s in sessions]}

    async def select(self, session_id: str) -> Dict[str, Any]:
        try:
            player = await self.controller.select_session(session_id)
        except SessionFetchError as e:
            return {"error": str(e)}

        if player is None:
            return {"error": f"Selection of {session_id} was superseded"}
        return self.state()

    async def deselect(self) -> Dict[str, Any]:
        await self.controller.deselect()
        return {"session_id": None}

    def state(self) -> Dict[str, Any]:
        player = self.controller.player
        if player is None:
            return {"error": "No session selected"}

        state = player.to_dict()
        summary = self.controller.summary
        state["session"] = summary.to_dict() if summary else None
        state["live"] = self.controller.live_subscribed
        return state

    async def control(self, action: str, **kwargs) -> Dict[str, Any]:
        """
        Control playback.

        Actions: play, pause, toggle, seek, step_forward, step_back, speed
        """
        player = self.controller.player
        if player is None:
            return {"error": "No session selected"}

        if action == "play":
            player.play()
        elif action == "pause":
            player.pause()
        elif action == "toggle":
            player.toggle()
        elif action == "seek":
            index = kwargs.get("index")
            if index is not None:
                player.seek(int(index))
        elif action == "step_forward":
            player.step_forward()
        elif action == "step_back":
            player.step_back()
        elif action == "speed":
            speed = kwargs.get("speed")
            if speed is not None:
                player.set_speed(float(speed))
        else:
            return {"error": f"Unknown action: {action}"}

        return self.state()

    def timeline(self) -> Dict[str, Any]:
        player = self.controller.player
        if player is None:
            return {"error": "No session selected"}

        return {
            "session_id": player.session_id,
            "position": player.position,
            "timeline": [entry.to_dict() for entry in build_timeline(player)],
        }

    def ingest_live(self, session_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Publish an event pushed over HTTP to the local live channel."""
        if self.local_channel is None:
            return {"error": "Live ingest is disabled"}

        try:
            event = event_from_dict(data)
        except ValueError as e:
            return {"error": str(e)}

        delivered = self.local_channel.publish(session_id, event)
        return {"event_id": event.id, "delivered": delivered}


def create_app(replay_api: ReplayAPI) -> FastAPI:
    """Create and configure the FastAPI application."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("API server starting up")
        yield
        logger.info("API server shutting down")
        await replay_api.controller.close()

    app = FastAPI(
        title="Council Replay API",
        description="Replay and live timeline for council deliberations",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app, replay_api)

    return app


def _check(result: Dict[str, Any], status_code: int) -> Dict[str, Any]:
    if "error" in result:
        raise HTTPException(status_code=status_code, detail=result["error"])
    return result


def register_routes(app: FastAPI, replay_api: ReplayAPI):
    """Register all API routes."""

    # ==================== Sessions ====================

    @app.get("/api/sessions")
    async def list_sessions():
        return _check(await replay_api.list_sessions(), 502)

    @app.post("/api/sessions/{session_id}/select")
    async def select_session(session_id: str):
        return _check(await replay_api.select(session_id), 404)

    @app.delete("/api/sessions/current")
    async def deselect_session():
        return await replay_api.deselect()

    @app.post("/api/sessions/{session_id}/live")
    async def ingest_live_event(session_id: str, request: LiveEventRequest):
        return _check(replay_api.ingest_live(session_id, request.event), 400)

    # ==================== Player ====================

    @app.get("/api/player")
    async def get_player():
        return _check(replay_api.state(), 404)

    @app.post("/api/player/control")
    async def control_player(request: ControlRequest):
        result = await replay_api.control(
            request.action,
            index=request.index,
            speed=request.speed,
        )
        return _check(result, 400)

    @app.get("/api/player/timeline")
    async def get_timeline():
        return _check(replay_api.timeline(), 404)

    # ==================== Health Check ====================

    @app.get("/health")
    async def health_check():
        return {
            "status": "ok",
            "session_id": replay_api.controller.active_session_id,
            "timestamp": datetime.now().isoformat(),
        }
