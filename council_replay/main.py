#!/usr/bin/env python3
"""
Council Replay - Main Application

Serves the replay API, or replays a recorded deliberation in the terminal.
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

import uvicorn

from council_replay.api.client import CouncilAPIClient, SessionFetchError, SessionSource
from council_replay.api.demo import DemoSessionSource
from council_replay.api.push import LocalPushChannel, PushChannel, WebSocketPushChannel
from council_replay.api.server import ReplayAPI, create_app
from council_replay.config import AppConfig, load_config
from council_replay.replay.player import TimelinePlayer
from council_replay.replay.session import ReplaySessionController
from council_replay.replay.timeline import (
    event_label,
    format_duration,
    format_timestamp,
    summarize_event,
)

logger = logging.getLogger(__name__)


class CouncilReplayApp:
    """Wires configuration into sources, channels and the session controller."""

    def __init__(self, config: AppConfig):
        self.config = config

    def _create_source(self) -> SessionSource:
        api_config = self.config.api
        if api_config.demo_mode:
            logger.info("Using demo sessions")
            return DemoSessionSource()

        return CouncilAPIClient(
            base_url=api_config.base_url,
            timeout_s=api_config.timeout_s,
            list_limit=api_config.list_limit,
            api_token=api_config.api_token,
        )

    def _create_push_channel(self, local_fallback: bool) -> Optional[PushChannel]:
        push_config = self.config.push
        if push_config.enabled:
            return WebSocketPushChannel(
                url=push_config.url,
                reconnect_delay_s=push_config.reconnect_delay_s,
                heartbeat_s=push_config.heartbeat_s,
            )
        return LocalPushChannel() if local_fallback else None

    def create_controller(self, local_fallback: bool = False) -> ReplaySessionController:
        return ReplaySessionController(
            source=self._create_source(),
            push_channel=self._create_push_channel(local_fallback),
            player_config=self.config.player,
        )

    def serve(self):
        """Run the replay API server."""
        controller = self.create_controller(local_fallback=True)
        local_channel = controller.push_channel if isinstance(controller.push_channel, LocalPushChannel) else None
        app = create_app(ReplayAPI(controller, local_channel=local_channel))

        logger.info("Starting Council Replay server")
        uvicorn.run(
            app,
            host=self.config.server.host,
            port=self.config.server.port,
            log_level=self.config.log_level.lower(),
        )

    async def list_sessions(self):
        controller = self.create_controller()
        try:
            for session in await controller.list_sessions():
                status = "consensus" if session.consensus_reached else "no consensus"
                print(
                    f"{session.id:<32} {format_duration(session.duration_ms):>8}  "
                    f"{session.frame_count:>4} frames  {status:<13} {session.title}"
                )
        finally:
            await controller.close()

    async def play(self, session_id: str, speed: Optional[float] = None, start: int = 0):
        """Replay a session in the terminal until it ends."""
        controller = self.create_controller()
        try:
            player = await controller.select_session(session_id)
            if player is None:
                return

            finished = asyncio.get_running_loop().create_future()
            shown = {"position": -1}

            def on_change(p: TimelinePlayer):
                if p.position != shown["position"]:
                    shown["position"] = p.position
                    print_event(p)

            def on_ended(p: TimelinePlayer):
                if not finished.done():
                    finished.set_result(None)

            player.add_listener(on_change)
            player.add_ended_callback(on_ended)

            if speed is not None:
                player.set_speed(speed)
            player.seek(start)
            on_change(player)

            player.play()
            if not player.is_playing:
                print("Nothing left to play")
                return

            await finished
            print(f"-- end of session {session_id} --")
        finally:
            await controller.close()


def print_event(player: TimelinePlayer):
    event = player.current_event
    if event is None:
        return
    print(
        f"[{format_timestamp(event.timestamp_ms)}] "
        f"{player.position + 1}/{player.length} {player.progress_ratio:4.0%}  "
        f"{event_label(event)}: {summarize_event(event)}"
    )


def main():
    parser = argparse.ArgumentParser(description="Council Replay")
    parser.add_argument(
        "-c", "--config",
        default="config/config.yaml",
        help="Path to configuration file",
    )
    parser.add_argument(
        "--demo",
        action="store_true",
        help="Use the built-in demo sessions instead of the council API",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("serve", help="Run the replay API server")
    subparsers.add_parser("sessions", help="List recorded sessions")

    play_parser = subparsers.add_parser("play", help="Replay a session in the terminal")
    play_parser.add_argument("session_id")
    play_parser.add_argument("--speed", type=float, default=None, help="Playback speed multiplier")
    play_parser.add_argument("--from", dest="start", type=int, default=0, help="Start at event index")

    args = parser.parse_args()

    config = load_config(args.config)
    if args.demo:
        config.api.demo_mode = True

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    app = CouncilReplayApp(config)

    try:
        if args.command == "serve":
            app.serve()
        elif args.command == "sessions":
            asyncio.run(app.list_sessions())
        elif args.command == "play":
            asyncio.run(app.play(args.session_id, speed=args.speed, start=args.start))
    except SessionFetchError as e:
        logger.error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    main()
