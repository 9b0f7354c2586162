from .client import (
    CouncilAPIClient,
    SessionSource,
    SessionFetchError,
    deliberation_to_events,
    deliberation_to_summary,
)
from .demo import DemoSessionSource
from .push import PushChannel, LocalPushChannel, WebSocketPushChannel
from .server import ReplayAPI, create_app

__all__ = [
    "CouncilAPIClient",
    "SessionSource",
    "SessionFetchError",
    "deliberation_to_events",
    "deliberation_to_summary",
    "DemoSessionSource",
    "PushChannel",
    "LocalPushChannel",
    "WebSocketPushChannel",
    "ReplayAPI",
    "create_app",
]
