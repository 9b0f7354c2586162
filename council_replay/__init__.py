"""
Council Replay - deliberation replay and live timeline engine

Replays recorded AI council deliberations as a seekable,
speed-adjustable timeline and splices in live events as they
are pushed from the council backend.
"""

__version__ = "0.1.0"
