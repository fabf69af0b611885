"""
Core enums - the fundamental vocabulary of the tick engine.

These are the basic building blocks used throughout the codebase.
"""

from enum import Enum, auto


class Prediction(Enum):
    """Contract family a position settles under."""
    RISE = "RISE"
    FALL = "FALL"
    HIGHER = "HIGHER"
    LOWER = "LOWER"
    OVER = "OVER"
    UNDER = "UNDER"
    EVEN = "EVEN"
    ODD = "ODD"
    MATCHES = "MATCHES"
    DIFFERS = "DIFFERS"


class PositionStatus(Enum):
    """Position lifecycle status."""
    OPEN = "OPEN"
    WON = "WON"
    LOST = "LOST"


class DurationType(Enum):
    """How a contract's duration is measured."""
    TICKS = "ticks"
    SECONDS = "seconds"
    MINUTES = "minutes"


class StatsMode(Enum):
    """Tick filter applied before counting digits."""
    RAW = "raw"
    MATCHES_RUN = "matches-run"
    DIFFERS_RUN = "differs-run"


class ConnectionState(Enum):
    """FeedClient connection lifecycle."""
    DISCONNECTED = auto()
    CONNECTING = auto()
    CONNECTED = auto()
    RECONNECTING = auto()
    EXHAUSTED = auto()
