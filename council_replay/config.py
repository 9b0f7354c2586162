"""
Configuration loading for Council Replay.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional
import logging

import yaml

logger = logging.getLogger(__name__)


@dataclass
class PlayerConfig:
    base_period_ms: int = 2000  # One event per period at 1x
    default_speed: float = 1.0
    speeds: List[float] = field(default_factory=lambda: [0.5, 1.0, 1.5, 2.0])


@dataclass
class APIConfig:
    base_url: str = "http://localhost:3001/api/v1"
    timeout_s: float = 10.0
    list_limit: int = 50
    api_token: Optional[str] = None
    demo_mode: bool = False


@dataclass
class PushConfig:
    enabled: bool = False
    url: str = "ws://localhost:3001/ws"
    reconnect_delay_s: float = 5.0
    heartbeat_s: float = 30.0


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 5050


@dataclass
class AppConfig:
    player: PlayerConfig = field(default_factory=PlayerConfig)
    api: APIConfig = field(default_factory=APIConfig)
    push: PushConfig = field(default_factory=PushConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    log_level: str = "INFO"


def _parse_player_config(config: dict) -> PlayerConfig:
    defaults = PlayerConfig()
    speeds = [float(s) for s in config.get("speeds", defaults.speeds)]
    player = PlayerConfig(
        base_period_ms=int(config.get("base_period_ms", defaults.base_period_ms)),
        default_speed=float(config.get("default_speed", defaults.default_speed)),
        speeds=speeds,
    )

    if player.base_period_ms <= 0:
        raise ValueError(f"player.base_period_ms must be positive, got {player.base_period_ms}")
    if player.default_speed <= 0 or any(s <= 0 for s in player.speeds):
        raise ValueError("player speeds must be positive")

    return player


def parse_config(config: dict) -> AppConfig:
    """Parse a configuration mapping into typed sections."""
    config = config or {}

    return AppConfig(
        player=_parse_player_config(config.get("player") or {}),
        api=APIConfig(**(config.get("api") or {})),
        push=PushConfig(**(config.get("push") or {})),
        server=ServerConfig(**(config.get("server") or {})),
        log_level=(config.get("logging") or {}).get("level", "INFO"),
    )


def load_config(config_path: str) -> AppConfig:
    """Load configuration from a YAML file, falling back to defaults."""
    config_file = Path(config_path)

    if not config_file.exists():
        logger.warning(f"Config file not found: {config_path}, using defaults")
        return AppConfig()

    with open(config_file) as f:
        config = yaml.safe_load(f)

    logger.info(f"Loaded configuration from {config_path}")
    return parse_config(config)
