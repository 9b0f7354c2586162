"""
Session controller for deliberation replay.

Owns the active session's EventLog, TimelinePlayer and live subscription,
and enforces the session-switch boundary: the old timer is cancelled and
the old subscription released before the next session is loaded.
"""

from typing import TYPE_CHECKING, Callable, List, Optional
import logging

from ..config import PlayerConfig
from ..shared.protocol import DeliberationEvent, SessionSummary
from .event_log import EventLog
from .player import Scheduler, TimelinePlayer

if TYPE_CHECKING:
    from ..api.client import SessionSource
    from ..api.push import PushChannel

logger = logging.getLogger(__name__)


class ReplaySessionController:
    """
    Switches between recorded sessions.

    A new EventLog and TimelinePlayer are built per selection; nothing
    carries over between sessions. Live callbacks are tagged with the
    session they were subscribed for and dropped once that session is no
    longer active.
    """

    def __init__(
        self,
        source: "SessionSource",
        push_channel: Optional["PushChannel"] = None,
        player_config: Optional[PlayerConfig] = None,
        scheduler: Optional[Scheduler] = None,
    ):
        self.source = source
        self.push_channel = push_channel
        self.player_config = player_config or PlayerConfig()
        self._scheduler = scheduler

        self._player: Optional[TimelinePlayer] = None
        self._summary: Optional[SessionSummary] = None
        self._active_session_id: Optional[str] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._selection_token = 0

    @property
    def player(self) -> Optional[TimelinePlayer]:
        return self._player

    @property
    def active_session_id(self) -> Optional[str]:
        return self._active_session_id

    @property
    def summary(self) -> Optional[SessionSummary]:
        return self._summary

    @property
    def live_subscribed(self) -> bool:
        return self._unsubscribe is not None

    async def list_sessions(self) -> List[SessionSummary]:
        return await self.source.fetch_session_list()

    async def select_session(self, session_id: str) -> Optional[TimelinePlayer]:
        """
        Tear down the current session and load another.

        Returns:
            The new player, or None if a newer selection superseded this one
            while it was loading

        Raises:
            SessionFetchError: if the session cannot be loaded
        """
        self._selection_token += 1
        token = self._selection_token

        self._teardown()
        logger.info(f"Selecting session {session_id}")

        try:
            detail = await self.source.fetch_session(session_id)
        except Exception as e:
            logger.error(f"Failed to load session {session_id}: {e}")
            raise

        if token != self._selection_token:
            logger.info(f"Discarding late response for session {session_id}")
            return None

        player = TimelinePlayer(
            EventLog(session_id),
            total_duration_ms=detail.total_duration_ms,
            base_period_ms=self.player_config.base_period_ms,
            speed_multiplier=self.player_config.default_speed,
            scheduler=self._scheduler,
        )
        player.initialize(session_id, detail.events)

        self._player = player
        self._summary = detail.summary
        self._active_session_id = session_id
        self._subscribe(session_id)

        return player

    async def deselect(self):
        """Drop the active session and invalidate any in-flight load."""
        self._selection_token += 1
        self._teardown()

    async def close(self):
        await self.deselect()
        await self.source.close()
        if self.push_channel:
            await self.push_channel.close()

    def _teardown(self):
        if self._player is not None:
            self._player.dispose()
            self._player = None

        if self._unsubscribe is not None:
            try:
                self._unsubscribe()
            except Exception as e:
                logger.error(f"Error releasing live subscription: {e}")
            self._unsubscribe = None

        if self._active_session_id is not None:
            logger.info(f"Closed session {self._active_session_id}")
        self._active_session_id = None
        self._summary = None

    def _subscribe(self, session_id: str):
        if self.push_channel is None:
            return

        try:
            self._unsubscribe = self.push_channel.subscribe(
                session_id, self._make_live_handler(session_id)
            )
        except Exception as e:
            logger.warning(f"Live updates unavailable for session {session_id}: {e}")
            self._unsubscribe = None

    def _make_live_handler(self, session_id: str) -> Callable[[DeliberationEvent], None]:
        def handle(event: DeliberationEvent):
            player = self._player
            if player is None or self._active_session_id != session_id:
                logger.info(f"Rejected live event {event.id} for inactive session {session_id}")
                return
            player.on_live_event(event, session_id=session_id)

        return handle
