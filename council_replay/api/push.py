"""
Live push channels delivering deliberation events as they happen.

Supports:
- Local - in-process fan-out, fed by the HTTP live-ingest route
- WebSocket - the council backend's replay stream
"""

from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional
import asyncio
import json
import logging
import time

import aiohttp

from ..shared.protocol import DeliberationEvent, event_from_dict

logger = logging.getLogger(__name__)


EventHandler = Callable[[DeliberationEvent], None]
Unsubscribe = Callable[[], None]


class PushChannel(ABC):
    """Abstract base class for live event channels."""

    @abstractmethod
    def subscribe(self, session_id: str, on_event: EventHandler) -> Unsubscribe:
        """
        Start delivering a session's live events to on_event.

        Returns:
            Callable that stops delivery
        """
        ...

    @property
    def is_connected(self) -> bool:
        return True

    async def close(self):
        pass


class LocalPushChannel(PushChannel):
    """Fans out published events to in-process subscribers."""

    def __init__(self):
        self._subscribers: Dict[str, List[EventHandler]] = {}

    def subscribe(self, session_id: str, on_event: EventHandler) -> Unsubscribe:
        self._subscribers.setdefault(session_id, []).append(on_event)
        logger.debug(f"Local subscription added for session {session_id}")

        def unsubscribe():
            handlers = self._subscribers.get(session_id, [])
            if on_event in handlers:
                handlers.remove(on_event)
            if not handlers:
                self._subscribers.pop(session_id, None)

        return unsubscribe

    def subscriber_count(self, session_id: str) -> int:
        return len(self._subscribers.get(session_id, []))

    def publish(self, session_id: str, event: DeliberationEvent) -> int:
        """
        Deliver an event to every subscriber of a session.

        Returns:
            Number of subscribers the event was delivered to
        """
        delivered = 0
        for handler in list(self._subscribers.get(session_id, [])):
            try:
                handler(event)
                delivered += 1
            except Exception as e:
                logger.error(f"Live event handler error: {e}")
        return delivered


class WebSocketPushChannel(PushChannel):
    """
    Live replay frames from the council backend over a WebSocket.

    After connecting, the client joins the session's room with
    {"type": "join-decision", "data": session_id} and receives
    {"type": "replay-frame", "data": {...event...}} messages.
    Dropped connections are retried after reconnect_delay_s.
    """

    def __init__(
        self,
        url: str,
        reconnect_delay_s: float = 5.0,
        heartbeat_s: float = 30.0,
    ):
        self.url = url
        self.reconnect_delay_s = reconnect_delay_s
        self.heartbeat_s = heartbeat_s
        self._session: Optional[aiohttp.ClientSession] = None
        self._tasks: Dict[int, asyncio.Task] = {}
        self._next_subscription_id = 1
        self._connected = 0

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    @property
    def is_connected(self) -> bool:
        return self._connected > 0

    def subscribe(self, session_id: str, on_event: EventHandler) -> Unsubscribe:
        subscription_id = self._next_subscription_id
        self._next_subscription_id += 1

        task = asyncio.get_running_loop().create_task(
            self._run(session_id, on_event)
        )
        self._tasks[subscription_id] = task

        def unsubscribe():
            pending = self._tasks.pop(subscription_id, None)
            if pending is not None:
                pending.cancel()
                logger.debug(f"Unsubscribed from live session {session_id}")

        return unsubscribe

    async def close(self):
        for task in self._tasks.values():
            task.cancel()
        self._tasks.clear()
        if self._session:
            await self._session.close()

    async def _run(self, session_id: str, on_event: EventHandler):
        """Connection loop for one subscription."""
        started_ms = int(time.time() * 1000)

        while True:
            try:
                session = await self._get_session()
                async with session.ws_connect(self.url, heartbeat=self.heartbeat_s) as ws:
                    self._connected += 1
                    try:
                        logger.info(f"Live channel connected for session {session_id}")
                        await ws.send_json({"type": "join-decision", "data": session_id})

                        async for msg in ws:
                            if msg.type == aiohttp.WSMsgType.TEXT:
                                self._handle_message(session_id, msg.data, on_event, started_ms)
                            elif msg.type == aiohttp.WSMsgType.ERROR:
                                logger.warning(f"Live channel error: {ws.exception()}")
                                break
                    finally:
                        self._connected -= 1

                logger.warning(f"Live channel closed for session {session_id}")

            except asyncio.CancelledError:
                raise
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                logger.warning(f"Live channel unavailable for session {session_id}: {e}")
            except Exception as e:
                logger.error(f"Live channel error for session {session_id}: {e}")

            await asyncio.sleep(self.reconnect_delay_s)

    def _handle_message(
        self,
        session_id: str,
        raw: str,
        on_event: EventHandler,
        started_ms: int,
    ):
        """Parse one socket message and deliver it if it is a replay frame."""
        try:
            message = json.loads(raw)
        except ValueError:
            logger.warning("Skipping non-JSON live message")
            return

        if not isinstance(message, dict) or message.get("type") != "replay-frame":
            return

        frame = message.get("data")
        if not isinstance(frame, dict):
            logger.warning("Skipping replay frame without data")
            return

        frame_session = frame.get("sessionId") or frame.get("session_id")
        if frame_session and frame_session != session_id:
            logger.debug(f"Skipping frame for session {frame_session} on {session_id} subscription")
            return

        if frame.get("timestamp") is None:
            # Live frames without an offset are placed at "now"
            frame = {**frame, "timestamp": int(time.time() * 1000) - started_ms}

        try:
            event = event_from_dict(frame)
        except ValueError as e:
            logger.warning(f"Skipping malformed replay frame: {e}")
            return

        try:
            on_event(event)
        except Exception as e:
            logger.error(f"Live event handler error: {e}")
